"""
Finding Template Catalog.

Canonical source of every finding the simulated checks can report,
grouped by check type (ssl_tls, security_headers, ...).

Used by:
    - ProbabilisticSampler: draws templates per check type and depth
    - Tests:                assert categories and severities of output

Each template is a frozen default. The sampler stamps scan id,
category and affected resource onto a copy; the template itself is
never mutated.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from vulnscope.scanner.base import CHECK_TYPES


@dataclass(frozen=True)
class FindingTemplate:
    template_id: str
    title: str
    description: str
    recommendation: str
    severity: str                    # critical, high, medium, low, info
    check_type: str                  # one of CHECK_TYPES

    evidence: Optional[str] = None
    reference_links: Tuple[str, ...] = field(default_factory=tuple)
    compliance_tags: Tuple[str, ...] = field(default_factory=tuple)


# ═══════════════════════════════════════════════════════════════════════════
# REGISTRY
# ═══════════════════════════════════════════════════════════════════════════

_CATALOG: Dict[str, List[FindingTemplate]] = {ct: [] for ct in CHECK_TYPES}


def _r(tmpl: FindingTemplate) -> FindingTemplate:
    """Register a template under its check type."""
    _CATALOG[tmpl.check_type].append(tmpl)
    return tmpl


# ───────────────────────────────────────────────────────────────────────────
# SSL / TLS
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="ssl-legacy-tls",
    title="TLS 1.0/1.1 Enabled",
    description=(
        "The server supports deprecated TLS versions (1.0 and 1.1) which "
        "have known security vulnerabilities."
    ),
    recommendation="Disable TLS 1.0 and 1.1, and only support TLS 1.2 or higher.",
    severity="high",
    check_type="ssl_tls",
    evidence="Supported protocols: TLSv1.0, TLSv1.1, TLSv1.2, TLSv1.3",
    reference_links=("https://www.ssllabs.com/ssltest/",),
    compliance_tags=("PCI-DSS 4.0", "NIST 800-52"),
))

_r(FindingTemplate(
    template_id="ssl-weak-ciphers",
    title="Weak Cipher Suites",
    description="The server supports weak cipher suites that could be exploited by attackers.",
    recommendation=(
        "Configure the server to use only strong cipher suites with "
        "AES-256-GCM or ChaCha20."
    ),
    severity="medium",
    check_type="ssl_tls",
    evidence="Weak ciphers found: TLS_RSA_WITH_AES_128_CBC_SHA, TLS_RSA_WITH_3DES_EDE_CBC_SHA",
    reference_links=("https://wiki.mozilla.org/Security/Server_Side_TLS",),
    compliance_tags=("PCI-DSS", "HIPAA"),
))

_r(FindingTemplate(
    template_id="ssl-cert-expiring",
    title="Certificate Expiring Soon",
    description="The SSL certificate will expire within 30 days.",
    recommendation="Renew the SSL certificate before expiration to prevent service disruption.",
    severity="medium",
    check_type="ssl_tls",
    evidence="Certificate expires: 2024-02-15T23:59:59Z",
))

_r(FindingTemplate(
    template_id="ssl-no-ocsp-stapling",
    title="Missing OCSP Stapling",
    description="OCSP Stapling is not enabled, which may slow down TLS handshakes.",
    recommendation="Enable OCSP Stapling to improve connection performance and privacy.",
    severity="low",
    check_type="ssl_tls",
))

# ───────────────────────────────────────────────────────────────────────────
# Security headers
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="header-missing-csp",
    title="Missing Content-Security-Policy",
    description=(
        "The Content-Security-Policy header is not set, leaving the "
        "application vulnerable to XSS attacks."
    ),
    recommendation=(
        "Implement a strict Content-Security-Policy header to prevent XSS "
        "and data injection attacks."
    ),
    severity="high",
    check_type="security_headers",
    evidence="Response headers do not include Content-Security-Policy",
    reference_links=("https://developer.mozilla.org/en-US/docs/Web/HTTP/CSP",),
    compliance_tags=("OWASP A7",),
))

_r(FindingTemplate(
    template_id="header-missing-xfo",
    title="Missing X-Frame-Options",
    description=(
        "The X-Frame-Options header is not set, making the site vulnerable "
        "to clickjacking attacks."
    ),
    recommendation="Set X-Frame-Options to 'DENY' or 'SAMEORIGIN' to prevent clickjacking.",
    severity="medium",
    check_type="security_headers",
    evidence="X-Frame-Options header not present",
    reference_links=("https://developer.mozilla.org/en-US/docs/Web/HTTP/Headers/X-Frame-Options",),
))

_r(FindingTemplate(
    template_id="header-missing-hsts",
    title="Strict-Transport-Security Not Set",
    description="HSTS header is not configured, allowing potential downgrade attacks.",
    recommendation="Enable HSTS with a minimum max-age of 31536000 seconds (1 year).",
    severity="medium",
    check_type="security_headers",
    evidence="Strict-Transport-Security header missing",
    compliance_tags=("OWASP", "PCI-DSS"),
))

_r(FindingTemplate(
    template_id="header-missing-xcto",
    title="X-Content-Type-Options Missing",
    description="The X-Content-Type-Options header is not set to 'nosniff'.",
    recommendation="Add X-Content-Type-Options: nosniff to prevent MIME type sniffing.",
    severity="low",
    check_type="security_headers",
))

_r(FindingTemplate(
    template_id="header-missing-referrer-policy",
    title="Referrer-Policy Not Configured",
    description="No Referrer-Policy header is set, potentially leaking sensitive URL information.",
    recommendation="Set Referrer-Policy to 'strict-origin-when-cross-origin' or 'no-referrer'.",
    severity="low",
    check_type="security_headers",
))

# ───────────────────────────────────────────────────────────────────────────
# Vulnerability scan
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="vuln-outdated-server",
    title="Outdated Server Software",
    description=(
        "The server is running an outdated version of Apache/nginx with "
        "known vulnerabilities."
    ),
    recommendation="Update to the latest stable version of the web server software.",
    severity="critical",
    check_type="vulnerability_scan",
    evidence="Server: Apache/2.4.29 (Ubuntu) - CVE-2021-44790 applies",
    reference_links=("https://nvd.nist.gov/vuln/detail/CVE-2021-44790",),
    compliance_tags=("CVE-2021-44790",),
))

_r(FindingTemplate(
    template_id="vuln-directory-listing",
    title="Directory Listing Enabled",
    description="Directory listing is enabled on the server, exposing file structure to attackers.",
    recommendation="Disable directory listing in the web server configuration.",
    severity="medium",
    check_type="vulnerability_scan",
    evidence="Directories /uploads/ and /backup/ are publicly listable",
))

_r(FindingTemplate(
    template_id="vuln-sensitive-files",
    title="Sensitive Files Exposed",
    description="Sensitive configuration files are accessible from the web.",
    recommendation=(
        "Remove or restrict access to sensitive files like .env, "
        "config.php, web.config."
    ),
    severity="high",
    check_type="vulnerability_scan",
    evidence="Accessible files: /.env (200 OK), /config.php.bak (200 OK)",
))

# ───────────────────────────────────────────────────────────────────────────
# OWASP Top 10
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="owasp-sqli",
    title="SQL Injection Vulnerability",
    description="The application is vulnerable to SQL injection attacks in the search parameter.",
    recommendation="Use parameterized queries or prepared statements for all database operations.",
    severity="critical",
    check_type="owasp_top_10",
    evidence="Parameter 'search' vulnerable: /api/products?search=1' OR '1'='1",
    reference_links=("https://owasp.org/Top10/A03_2021-Injection/",),
    compliance_tags=("OWASP A03:2021", "CWE-89"),
))

_r(FindingTemplate(
    template_id="owasp-xss",
    title="Cross-Site Scripting (XSS)",
    description="Reflected XSS vulnerability found in the comment parameter.",
    recommendation="Implement proper input validation and output encoding for all user inputs.",
    severity="high",
    check_type="owasp_top_10",
    evidence="Payload '<script>alert(1)</script>' reflected in response",
    reference_links=("https://owasp.org/www-community/attacks/xss/",),
    compliance_tags=("OWASP A07:2021", "CWE-79"),
))

_r(FindingTemplate(
    template_id="owasp-broken-auth",
    title="Broken Authentication",
    description="Session tokens are predictable and could be brute-forced.",
    recommendation="Use cryptographically secure session token generation.",
    severity="high",
    check_type="owasp_top_10",
    compliance_tags=("OWASP A07:2021", "CWE-287"),
))

_r(FindingTemplate(
    template_id="owasp-idor",
    title="Insecure Direct Object References",
    description="User IDs in URLs can be manipulated to access other users' data.",
    recommendation="Implement proper authorization checks on all data access operations.",
    severity="high",
    check_type="owasp_top_10",
    evidence="Changing /api/users/123 to /api/users/124 returns different user data",
    compliance_tags=("OWASP A01:2021",),
))

# ───────────────────────────────────────────────────────────────────────────
# Port scan
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="port-ssh-exposed",
    title="SSH Port Exposed",
    description="SSH port (22) is exposed to the internet without IP restrictions.",
    recommendation="Restrict SSH access to specific IP addresses using firewall rules.",
    severity="medium",
    check_type="port_scan",
    evidence="Port 22/tcp open ssh OpenSSH 7.6p1",
))

_r(FindingTemplate(
    template_id="port-database-exposed",
    title="Database Port Exposed",
    description="Database port is publicly accessible, increasing attack surface.",
    recommendation="Close database ports to public access and use VPN or SSH tunneling.",
    severity="high",
    check_type="port_scan",
    evidence="Port 3306/tcp open mysql MySQL 5.7.32",
))

_r(FindingTemplate(
    template_id="port-unnecessary-services",
    title="Unnecessary Services Running",
    description="Multiple unnecessary services are exposed on various ports.",
    recommendation="Disable or firewall any services not required for the application.",
    severity="low",
    check_type="port_scan",
    evidence="Open ports: 21/FTP, 23/Telnet, 8080/HTTP-Proxy",
))

# ───────────────────────────────────────────────────────────────────────────
# DNS security
# ───────────────────────────────────────────────────────────────────────────

_r(FindingTemplate(
    template_id="dns-no-dnssec",
    title="Missing DNSSEC",
    description="DNSSEC is not enabled for the domain, making it vulnerable to DNS spoofing.",
    recommendation="Enable DNSSEC at the domain registrar level.",
    severity="medium",
    check_type="dns_security",
    reference_links=("https://www.cloudflare.com/dns/dnssec/how-dnssec-works/",),
))

_r(FindingTemplate(
    template_id="dns-no-spf",
    title="SPF Record Missing",
    description="No SPF record found, making the domain susceptible to email spoofing.",
    recommendation="Add an SPF record to specify authorized mail servers.",
    severity="medium",
    check_type="dns_security",
    evidence="No TXT record with v=spf1 prefix found",
    compliance_tags=("Email Security",),
))

_r(FindingTemplate(
    template_id="dns-no-dmarc",
    title="DMARC Not Configured",
    description="DMARC policy is not set up for email authentication.",
    recommendation="Implement DMARC with at least p=quarantine policy.",
    severity="low",
    check_type="dns_security",
))


# ═══════════════════════════════════════════════════════════════════════════
# PUBLIC API
# ═══════════════════════════════════════════════════════════════════════════

def get_templates(check_type: str) -> List[FindingTemplate]:
    """Templates registered for a check type. Empty list for unknown types."""
    return list(_CATALOG.get(check_type, []))


def all_templates() -> List[FindingTemplate]:
    return [t for templates in _CATALOG.values() for t in templates]


def get_template(template_id: str) -> Optional[FindingTemplate]:
    for tmpl in all_templates():
        if tmpl.template_id == template_id:
            return tmpl
    return None
