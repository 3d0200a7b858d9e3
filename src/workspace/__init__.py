"""Workspace orchestration: composite projects, vendor links and write plans."""

from .project import CompositeProject, LocalProject, ProjectOps
from .vendor import LinkFailure, link_local_projects, link_member_vendor_dirs
from .workspace import MemberSpec, Workspace
from .writer import PreparedWrite, VendorMode, plan_write

__all__ = [
    "CompositeProject",
    "LinkFailure",
    "LocalProject",
    "MemberSpec",
    "PreparedWrite",
    "ProjectOps",
    "VendorMode",
    "Workspace",
    "link_local_projects",
    "link_member_vendor_dirs",
    "plan_write",
]
