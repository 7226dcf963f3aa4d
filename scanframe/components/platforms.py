"""Platform identification from response fingerprints."""

from __future__ import annotations

import re
from typing import Optional

import httpx

from scanframe.core.logger import get_logger

logger = get_logger(__name__)


class PlatformManager:
    """
    Known platforms, grouped by type, and the fingerprints identifying them.

    Identification is header based (``Server``, ``X-Powered-By``, session
    cookie names) and by file extension; it only hints modules at which
    payloads are worth sending.
    """

    TYPES: dict[str, str] = {
        "os": "Operating systems",
        "db": "Databases",
        "servers": "Web servers",
        "languages": "Programming languages",
        "frameworks": "Frameworks",
    }

    PLATFORMS: dict[str, dict[str, str]] = {
        "os": {
            "unix": "Generic Unix family",
            "linux": "Linux",
            "bsd": "Generic BSD family",
            "windows": "MS Windows",
        },
        "db": {
            "mysql": "MySQL",
            "pgsql": "PostgreSQL",
            "mssql": "MSSQL",
            "oracle": "Oracle",
            "sqlite": "SQLite",
            "mongodb": "MongoDB",
        },
        "servers": {
            "apache": "Apache",
            "nginx": "Nginx",
            "iis": "IIS",
            "tomcat": "TomCat",
            "jetty": "Jetty",
        },
        "languages": {
            "php": "PHP",
            "asp": "ASP",
            "aspx": "ASP.NET",
            "java": "Java",
            "python": "Python",
            "ruby": "Ruby",
            "perl": "Perl",
        },
        "frameworks": {
            "rails": "Ruby on Rails",
            "django": "Django",
            "flask": "Flask",
            "express": "Express",
        },
    }

    # (header, pattern, platform)
    HEADER_SIGNATURES: list[tuple[str, re.Pattern, str]] = [
        ("server", re.compile(r"apache", re.I), "apache"),
        ("server", re.compile(r"nginx", re.I), "nginx"),
        ("server", re.compile(r"iis", re.I), "iis"),
        ("server", re.compile(r"microsoft", re.I), "windows"),
        ("server", re.compile(r"tomcat|coyote", re.I), "tomcat"),
        ("server", re.compile(r"jetty", re.I), "jetty"),
        ("server", re.compile(r"unix", re.I), "unix"),
        ("server", re.compile(r"ubuntu|debian|centos|red ?hat|fedora", re.I), "linux"),
        ("server", re.compile(r"(?:free|open|net)bsd", re.I), "bsd"),
        ("server", re.compile(r"gunicorn|uvicorn|werkzeug|python", re.I), "python"),
        ("x-powered-by", re.compile(r"php", re.I), "php"),
        ("x-powered-by", re.compile(r"asp\.net", re.I), "aspx"),
        ("x-powered-by", re.compile(r"servlet|jsp", re.I), "java"),
        ("x-powered-by", re.compile(r"express", re.I), "express"),
        ("x-powered-by", re.compile(r"phusion|passenger", re.I), "ruby"),
        ("set-cookie", re.compile(r"PHPSESSID", re.I), "php"),
        ("set-cookie", re.compile(r"ASP\.NET_SessionId|ASPSESSIONID", re.I), "aspx"),
        ("set-cookie", re.compile(r"JSESSIONID", re.I), "java"),
        ("set-cookie", re.compile(r"(?:^|[;\s])(?:csrftoken|sessionid)=", re.I), "django"),
        ("set-cookie", re.compile(r"_session_id|_rails", re.I), "rails"),
    ]

    EXTENSIONS: dict[str, str] = {
        "php": "php",
        "asp": "asp",
        "aspx": "aspx",
        "jsp": "java",
        "do": "java",
        "py": "python",
        "pl": "perl",
        "cgi": "perl",
        "rb": "ruby",
    }

    def valid(self) -> list[str]:
        """Short names of every known platform."""
        return [name for platforms in self.PLATFORMS.values() for name in platforms]

    def find_type(self, platform: str) -> Optional[str]:
        """Type key of ``platform``, or None if unknown."""
        for type_name, platforms in self.PLATFORMS.items():
            if platform in platforms:
                return type_name
        return None

    def fullname(self, platform: str) -> Optional[str]:
        """Human-readable name of ``platform``, or None if unknown."""
        type_name = self.find_type(platform)
        return self.PLATFORMS[type_name][platform] if type_name else None

    @classmethod
    def fingerprint(cls, response: httpx.Response) -> frozenset[str]:
        """
        Identify the platforms behind a response.

        Args:
            response: The response to inspect

        Returns:
            Short names of the identified platforms
        """
        found = set()

        for header, pattern, platform in cls.HEADER_SIGNATURES:
            values = response.headers.get_list(header)
            if any(pattern.search(v) for v in values):
                found.add(platform)

        path = response.request.url.path.lower()
        last = path.rsplit("/", 1)[-1]
        if "." in last:
            platform = cls.EXTENSIONS.get(last.rsplit(".", 1)[-1])
            if platform:
                found.add(platform)

        if found:
            logger.debug("Platforms identified", url=str(response.request.url), platforms=sorted(found))
        return frozenset(found)
