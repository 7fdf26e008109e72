"""
Data models for maintenance releases.

Serialized forms use the camelCase keys of the .maintenance.json file so that
files written by earlier tooling load unchanged.
"""

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from patchrelease.errors import ErrorKind, MaintenanceError

VERSION_PATTERN = re.compile(
    r'^(\d+)\.(\d+)\.(\d+)(?:-([^.-]+)\.(\d+))?$'
)


@dataclass
class Patch:
    """A named bundle of candidate commits for one source repository.

    The SHAs are tried in order when cherry-picking; the first one that
    applies wins.
    """
    repo: str
    name: str
    message: str                    # Usually an issue URL
    shas: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "name": self.name,
            "message": self.message,
            "shas": list(self.shas),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Patch":
        return cls(
            repo=data["repo"],
            name=data["name"],
            message=data["message"],
            shas=list(data.get("shas", [])),
        )


@dataclass
class ReleaseBranch:
    """A maintained release line of one repository."""
    repo: str
    branch: str
    brands: list[str]
    is_released: bool

    @property
    def key(self) -> tuple[str, str]:
        return (self.repo, self.branch)

    @property
    def dependency_branch(self) -> str:
        """Branch name used in dependency repositories for this release."""
        return f"{self.repo}-{self.branch}"

    def __str__(self) -> str:
        suffix = "" if self.is_released else " (unpublished)"
        return f"{self.repo} {self.branch} {','.join(self.brands)}{suffix}"

    def to_dict(self) -> dict:
        return {
            "repo": self.repo,
            "branch": self.branch,
            "brands": list(self.brands),
            "isReleased": self.is_released,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "ReleaseBranch":
        return cls(
            repo=data["repo"],
            branch=data["branch"],
            brands=list(data["brands"]),
            is_released=data["isReleased"],
        )


@dataclass
class Version:
    """A deployed version: MAJOR.MINOR.MAINTENANCE[-TEST_TYPE.TEST_NUMBER].

    1.5.0 is a production version, 1.5.0-rc.1 a release candidate.
    """
    major: int
    minor: int
    maintenance: int
    test_type: Optional[str] = None
    test_number: Optional[int] = None
    build_timestamp: Optional[str] = None

    @property
    def is_release_candidate(self) -> bool:
        return self.test_type == "rc"

    def __str__(self) -> str:
        base = f"{self.major}.{self.minor}.{self.maintenance}"
        if self.test_type is not None:
            return f"{base}-{self.test_type}.{self.test_number}"
        return base

    @classmethod
    def parse(cls, text: str) -> "Version":
        match = VERSION_PATTERN.match(text.strip())
        if not match:
            raise ValueError(f"Invalid version string: {text!r}")
        major, minor, maintenance, test_type, test_number = match.groups()
        return cls(
            major=int(major),
            minor=int(minor),
            maintenance=int(maintenance),
            test_type=test_type,
            test_number=int(test_number) if test_number is not None else None,
        )

    def to_dict(self) -> dict:
        return {
            "major": self.major,
            "minor": self.minor,
            "maintenance": self.maintenance,
            "testType": self.test_type,
            "testNumber": self.test_number,
            "buildTimestamp": self.build_timestamp,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Version":
        return cls(
            major=data["major"],
            minor=data["minor"],
            maintenance=data["maintenance"],
            test_type=data.get("testType"),
            test_number=data.get("testNumber"),
            build_timestamp=data.get("buildTimestamp"),
        )


@dataclass
class ModifiedBranch:
    """A release branch with pending or applied (but unpublished) changes."""
    release_branch: ReleaseBranch
    changed_dependencies: dict[str, str] = field(default_factory=dict)  # repo -> SHA
    needed_patches: list[Patch] = field(default_factory=list)
    pending_messages: list[str] = field(default_factory=list)  # not in the manifest yet
    pushed_messages: list[str] = field(default_factory=list)   # committed with the manifest
    deployed_version: Optional[Version] = None  # reset when dependencies change

    @property
    def repo(self) -> str:
        return self.release_branch.repo

    @property
    def branch(self) -> str:
        return self.release_branch.branch

    @property
    def brands(self) -> list[str]:
        return self.release_branch.brands

    @property
    def dependency_branch(self) -> str:
        return self.release_branch.dependency_branch

    @property
    def is_unused(self) -> bool:
        """Whether there is no need to keep tracking this branch."""
        return (
            not self.needed_patches
            and not self.changed_dependencies
            and not self.pending_messages
            and not self.pushed_messages
            and self.deployed_version is None
        )

    @property
    def is_ready_for_staged(self) -> bool:
        return (
            not self.needed_patches
            and bool(self.pushed_messages)
            and self.deployed_version is None
        )

    @property
    def is_ready_for_production(self) -> bool:
        return (
            not self.needed_patches
            and bool(self.pushed_messages)
            and self.deployed_version is not None
            and self.deployed_version.is_release_candidate
        )

    def needs(self, patch: Patch) -> bool:
        return any(p.name == patch.name for p in self.needed_patches)

    def add_pending_message(self, message: str) -> None:
        # Several patches may share one issue
        if message not in self.pending_messages:
            self.pending_messages.append(message)

    def push_pending_messages(self) -> None:
        for message in self.pending_messages:
            if message not in self.pushed_messages:
                self.pushed_messages.append(message)
        self.pending_messages = []

    def to_dict(self) -> dict:
        return {
            "releaseBranch": self.release_branch.to_dict(),
            "changedDependencies": dict(self.changed_dependencies),
            "neededPatches": [patch.name for patch in self.needed_patches],
            "pendingMessages": list(self.pending_messages),
            "pushedMessages": list(self.pushed_messages),
            "deployedVersion": self.deployed_version.to_dict() if self.deployed_version else None,
        }

    @classmethod
    def from_dict(cls, data: dict, patches: dict[str, Patch]) -> "ModifiedBranch":
        """Rebuild a branch, resolving needed patches by name against patches."""
        needed = []
        for name in data.get("neededPatches", []):
            if name not in patches:
                raise MaintenanceError(
                    ErrorKind.INVALID_STATE,
                    f"Branch {data['releaseBranch']['repo']} {data['releaseBranch']['branch']} "
                    f"needs unknown patch {name}",
                )
            needed.append(patches[name])
        deployed = data.get("deployedVersion")
        return cls(
            release_branch=ReleaseBranch.from_dict(data["releaseBranch"]),
            changed_dependencies=dict(data.get("changedDependencies", {})),
            needed_patches=needed,
            pending_messages=list(data.get("pendingMessages", [])),
            pushed_messages=list(data.get("pushedMessages", [])),
            deployed_version=Version.from_dict(deployed) if deployed else None,
        )


@dataclass
class BranchInventory:
    """Cached list of every known release branch."""
    branches: list[ReleaseBranch]
    computed_at: Optional[str] = None  # ISO timestamp

    @classmethod
    def computed_now(cls, branches: list[ReleaseBranch]) -> "BranchInventory":
        return cls(branches=branches, computed_at=datetime.now().isoformat())


@dataclass
class MaintenanceState:
    """Everything persisted about the current maintenance release."""
    patches: list[Patch] = field(default_factory=list)
    modified_branches: list[ModifiedBranch] = field(default_factory=list)
    inventory: Optional[BranchInventory] = None

    def find_patch(self, name: str) -> Patch:
        for patch in self.patches:
            if patch.name == name:
                return patch
        raise MaintenanceError(ErrorKind.NOT_FOUND, f"Patch not found for {name}")

    def find_modified_branch(self, repo: str, branch: str) -> Optional[ModifiedBranch]:
        for modified_branch in self.modified_branches:
            if modified_branch.repo == repo and modified_branch.branch == branch:
                return modified_branch
        return None

    def branches_needing(self, patch: Patch) -> list[ModifiedBranch]:
        return [mb for mb in self.modified_branches if mb.needs(patch)]

    def ensure_modified_branch(self, release_branch: ReleaseBranch) -> ModifiedBranch:
        """Return the tracked branch for release_branch, tracking it if new."""
        modified_branch = self.find_modified_branch(release_branch.repo, release_branch.branch)
        if modified_branch is None:
            modified_branch = ModifiedBranch(release_branch)
            self.modified_branches.append(modified_branch)
        return modified_branch

    def try_removing_modified_branch(self, modified_branch: ModifiedBranch) -> bool:
        """Stop tracking modified_branch if nothing about it is pending."""
        if modified_branch.is_unused:
            self.modified_branches.remove(modified_branch)
            return True
        return False

    def to_dict(self) -> dict:
        data = {
            "patches": [patch.to_dict() for patch in self.patches],
            "modifiedBranches": [mb.to_dict() for mb in self.modified_branches],
            "allReleaseBranches": [],
        }
        if self.inventory is not None:
            data["allReleaseBranches"] = [rb.to_dict() for rb in self.inventory.branches]
            data["inventoryComputedAt"] = self.inventory.computed_at
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "MaintenanceState":
        patches = [Patch.from_dict(p) for p in data.get("patches", [])]
        by_name = {patch.name: patch for patch in patches}
        modified_branches = [
            ModifiedBranch.from_dict(mb, by_name) for mb in data.get("modifiedBranches", [])
        ]
        modified_branches.sort(key=lambda mb: (mb.repo, mb.branch))

        # An empty list is a cached empty fleet only when a computation time was recorded
        inventory = None
        cached = data.get("allReleaseBranches", [])
        if cached or data.get("inventoryComputedAt"):
            inventory = BranchInventory(
                branches=[ReleaseBranch.from_dict(rb) for rb in cached],
                computed_at=data.get("inventoryComputedAt"),
            )
        return cls(patches=patches, modified_branches=modified_branches, inventory=inventory)
