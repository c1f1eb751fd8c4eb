"""Artifact file name helpers."""

import re

# name.war / name.jar / name.ear, followed by a non-identifier character or the end
_ARCHIVE_NAME = re.compile(r"[A-Za-z0-9_.\-]+\.[A-Za-z](?:ar|AR)(?=$|[^A-Za-z0-9_\-])")


def resolve_archive_name(url: str) -> str:
    """
    Extract the artifact file name from a URL or path.

    The name is whatever follows the last ``/``. When that part carries a query
    string (signed download links and the like) the archive name is recovered
    from it instead, e.g. ``app-1.2.3.war?sig=abc`` gives ``app-1.2.3.war``.
    No exception is raised for malformed input; callers validate URL shape.

    :param url: Artifact URL or path.
    :return: The archive file name.
    """
    if not url:
        return ""
    name = url[url.rfind("/") + 1:]
    if name.find("?") > 0:
        match = _ARCHIVE_NAME.search(name)
        if match:
            name = match.group()
    return name
