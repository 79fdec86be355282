from __future__ import annotations

from models import Build, Site


def build_path(build: Build, site: Site) -> str:
    if build.branch == site.default_branch:
        return f"/site/{site.owner}/{site.repository}"
    if site.demo_branch and build.branch == site.demo_branch:
        return f"/demo/{site.owner}/{site.repository}"
    return f"/preview/{site.owner}/{site.repository}/{build.branch}"


def build_url(build: Build, site: Site) -> str:
    return f"{site.bucket_host}{build_path(build, site)}"


def build_view_link(build: Build, site: Site) -> str:
    if build.branch == site.default_branch and site.domain:
        link = site.domain
    elif site.demo_branch and build.branch == site.demo_branch and site.demo_domain:
        link = site.demo_domain
    else:
        link = build.url or build_url(build, site)
    return f"{link.rstrip('/')}/"


def site_prefix(build: Build, site: Site) -> str:
    return build_path(build, site).lstrip("/")


def base_url(build: Build, site: Site) -> str:
    """Path prefix the generator renders links under; empty on a custom domain."""
    if build.branch == site.default_branch and site.domain:
        return ""
    if site.demo_branch and build.branch == site.demo_branch and site.demo_domain:
        return ""
    return build_path(build, site)
