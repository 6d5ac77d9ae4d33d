from enum import Enum

from packaging.version import parse


class CompareVersion(Enum):
    """Represents the result of comparing two versions."""

    LESS: int = -1
    """Indicates that version 1 is older than version 2 (v1 < v2)."""

    EQUAL: int = 0
    """Indicates that version 1 is the same as version 2 (v1 == v2)."""

    GREATER: int = 1
    """Indicates that version 1 is newer than version 2 (v1 > v2)."""

    def __str__(self):
        return self.name


def compare_versions(version1: str, version2: str) -> CompareVersion:
    """Compares two versions.

    Args:
        version1 (str): The first version string to compare.
        version2 (str): The second version string to compare against.

    Returns:
        CompareVersion: The result of the comparison (LESS, EQUAL, or GREATER).

    Examples:
        >>> compare_versions("1.0.0", "1.0.1")
        CompareVersion.LESS
    """
    v1 = parse(version1)
    v2 = parse(version2)

    if v1 < v2:
        return CompareVersion.LESS
    if v1 > v2:
        return CompareVersion.GREATER
    return CompareVersion.EQUAL


class VersionDiff(Enum):
    """Represents the semantic type of difference between two versions."""

    NONE = 0
    PATCH = 1
    MINOR = 2
    MAJOR = 3

    def __str__(self):
        return self.name


def version_difference(version1: str, version2: str) -> VersionDiff:
    """Determines the highest semantic difference level between two versions.

    Args:
        version1 (str): The base version string.
        version2 (str): The comparison version string.

    Returns:
        VersionDiff: MAJOR, MINOR, PATCH, or NONE.

    Examples:
        >>> version_difference("1.1.5", "1.2.0")
        VersionDiff.MINOR
    """
    v1 = parse(version1)
    v2 = parse(version2)

    if v1.major != v2.major:
        return VersionDiff.MAJOR

    if v1.minor != v2.minor:
        return VersionDiff.MINOR

    # Any remaining release difference counts as a patch difference.
    if v1.release != v2.release:
        return VersionDiff.PATCH

    return VersionDiff.NONE


def is_version_supported(required: str, current: str) -> bool:
    """Checks whether the running framework satisfies a required framework version.

    The running version must share the required major version and must not be older.

    Args:
        required (str): The version the features are written against.
        current (str): The running framework version.

    Returns:
        bool: True if the features can run on the current version.
    """
    if version_difference(required, current) is VersionDiff.MAJOR:
        return False
    return compare_versions(current, required) is not CompareVersion.LESS
