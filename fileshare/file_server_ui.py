"""
File Share UI - directory listing and download handlers

Every request path is resolved against the shared root; directories render
as an HTML listing, regular files stream back as attachments.
"""
import asyncio
import html
import logging
import os
import posixpath
import stat
import time
import urllib.parse
from dataclasses import dataclass, field
from typing import List, Optional

from aiohttp import web

from .config import ServerConfig

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", ServerConfig)

NOT_FOUND = "404 Not Found"
FORBIDDEN = "403 Forbidden"
SERVER_ERROR = "500 Internal Server Error"


class PathOutsideRoot(Exception):
    """Request path does not map to a location under the shared root."""


@dataclass
class ListingEntry:
    display_name: str
    url: str
    is_dir: bool
    size: str = ""


@dataclass
class DirectoryListing:
    rel_path: str
    parent_url: Optional[str]
    entries: List[ListingEntry] = field(default_factory=list)


@dataclass
class FileTransfer:
    path: str
    name: str
    size: int


def format_size(size):
    try:
        size = int(size)
    except (TypeError, ValueError):
        return "?"
    for unit in ['B', 'KB', 'MB', 'GB', 'TB']:
        if size < 1024:
            return f"{size:.1f} {unit}"
        size /= 1024
    return f"{size:.1f} PB"


def url_for(rel_path: str) -> str:
    # percent-encode the on-disk bytes so undecodable names still round-trip
    return "/" + urllib.parse.quote(os.fsencode(rel_path))


def display_name(name: str) -> str:
    return name.encode('utf-8', 'surrogateescape').decode('utf-8', 'replace')


def decode_request_path(raw_path: str) -> str:
    """Percent-decode a still-encoded URL path into a filesystem name."""
    raw = urllib.parse.unquote_to_bytes(raw_path)
    try:
        return os.fsdecode(raw)
    except UnicodeDecodeError:
        return raw.decode('utf-8', 'replace')


def resolve_request_path(root_dir: str, raw_path: str):
    """Map a URL path onto the shared root.

    Returns ``(full_path, rel_path)``. ``rel_path`` is the normalized path
    below the root with no leading slash, ``""`` for the root itself.
    ``..`` segments collapse at the root boundary; anything that still lands
    outside ``root_dir`` raises PathOutsideRoot.
    """
    if '\x00' in raw_path:
        raise PathOutsideRoot(raw_path)
    path = raw_path
    if os.altsep:
        # Windows takes both separators; elsewhere a backslash is a filename character
        path = path.replace(os.sep, '/')
    path = path.lstrip('/')
    rel_path = posixpath.normpath('/' + path).lstrip('/')

    if rel_path:
        full_path = os.path.abspath(os.path.join(root_dir, *rel_path.split('/')))
    else:
        full_path = root_dir

    boundary = root_dir.rstrip(os.sep) + os.sep
    if full_path != root_dir and not full_path.startswith(boundary):
        raise PathOutsideRoot(raw_path)
    return full_path, rel_path


def _build_entry(rel_path: str, entry: os.DirEntry) -> ListingEntry:
    try:
        is_dir = entry.is_dir()
        size = "" if is_dir else format_size(entry.stat().st_size)
    except OSError:
        is_dir, size = False, "?"
    return ListingEntry(
        display_name=html.escape(display_name(entry.name)),
        url=url_for(posixpath.join(rel_path, entry.name)),
        is_dir=is_dir,
        size=size,
    )


def read_listing(dir_path: str, rel_path: str) -> DirectoryListing:
    """Build the view model for one directory; immediate children only."""
    with os.scandir(dir_path) as it:
        children = sorted(it, key=lambda e: e.name)
    parent_url = url_for(posixpath.dirname(rel_path)) if rel_path else None
    return DirectoryListing(
        rel_path=html.escape(display_name(rel_path)),
        parent_url=parent_url,
        entries=[_build_entry(rel_path, child) for child in children],
    )


def render_listing(listing: DirectoryListing) -> str:
    html_parts = [f"""<!DOCTYPE html>
<html>
<head>
<meta charset="UTF-8">
<title>File Server - /{listing.rel_path}</title>
<style>
body {{ font-family: sans-serif; margin: 20px; }}
li {{ font-family: monospace; padding: 2px 0; }}
.dir {{ color: blue; }}
.file {{ color: green; }}
.size {{ opacity: 0.6; margin-left: 10px; }}
</style>
</head>
<body>
<h1>Directory Listing: /{listing.rel_path}</h1>
<ul>
"""]
    if listing.parent_url is not None:
        html_parts.append(f'<li><a href="{html.escape(listing.parent_url)}">.. (Parent Directory)</a></li>\n')
    for entry in listing.entries:
        href = html.escape(entry.url)
        if entry.is_dir:
            html_parts.append(f'<li><a href="{href}" class="dir">{entry.display_name}/</a></li>\n')
        else:
            html_parts.append(f'<li><a href="{href}" class="file">{entry.display_name}</a>'
                              f'<span class="size">{entry.size}</span></li>\n')
    html_parts.append('</ul>\n</body>\n</html>\n')
    return ''.join(html_parts)


async def list_directory(dir_path: str, rel_path: str) -> web.Response:
    loop = asyncio.get_running_loop()
    try:
        listing = await loop.run_in_executor(None, read_listing, dir_path, rel_path)
    except OSError as e:
        logger.warning(f"Directory read error: {e}")
        raise web.HTTPForbidden(text=FORBIDDEN)

    try:
        page = render_listing(listing)
        return web.Response(text=page, content_type='text/html', charset='utf-8')
    except (UnicodeError, ValueError) as e:
        logger.error(f"Listing render error for {dir_path!r}: {e}")
        raise web.HTTPInternalServerError(text=SERVER_ERROR)


def content_disposition(name: str) -> str:
    encoded = urllib.parse.quote(os.fsencode(name), safe='')
    shown = display_name(name)
    simple = shown if shown.isascii() and shown.isprintable() and not set(shown) & {'"', '\\'} else encoded
    return f'attachment; filename="{simple}"; filename*=UTF-8\'\'{encoded}'


async def send_file(request: web.Request, transfer: FileTransfer, config: ServerConfig):
    loop = asyncio.get_running_loop()
    try:
        f = await loop.run_in_executor(None, open, transfer.path, 'rb')
    except OSError as e:
        logger.warning(f"File open error: {e}")
        raise web.HTTPNotFound(text=NOT_FOUND)

    try:
        response = web.StreamResponse(headers={
            'Content-Disposition': content_disposition(transfer.name),
            'Content-Type': 'application/octet-stream',
        })
        response.content_length = transfer.size
        try:
            await response.prepare(request)
            if request.method == 'HEAD':
                return response
            remaining = transfer.size
            while remaining > 0:
                chunk = await loop.run_in_executor(None, f.read, min(config.chunk_size, remaining))
                if not chunk:
                    raise EOFError(f"file shrank by {remaining} bytes during transfer")
                await asyncio.wait_for(response.write(chunk), timeout=config.write_timeout)
                remaining -= len(chunk)
            await response.write_eof()
        except (OSError, EOFError, asyncio.TimeoutError) as e:
            logger.error(f"File transfer error for {transfer.path!r}: {e!r}")
            # headers are gone already; drop the connection so the client sees a short body
            if request.transport is not None:
                request.transport.close()
    finally:
        f.close()
    return response


async def handle_path(request: web.Request):
    config = request.app[CONFIG_KEY]
    request_path = decode_request_path(request.rel_url.raw_path)
    try:
        full_path, rel_path = resolve_request_path(config.root_dir, request_path)
    except PathOutsideRoot:
        logger.warning(f"Rejected path outside shared root: {request.path!r}")
        raise web.HTTPForbidden(text=FORBIDDEN)

    logger.debug(f"Processing path: {request.path} -> {full_path!r}")

    loop = asyncio.get_running_loop()
    try:
        st = await loop.run_in_executor(None, os.stat, full_path)
    except (FileNotFoundError, NotADirectoryError) as e:
        logger.warning(f"File open failed: {e}")
        raise web.HTTPNotFound(text=NOT_FOUND)
    except OSError as e:
        logger.error(f"File stat failed: {e}")
        raise web.HTTPInternalServerError(text=SERVER_ERROR)

    if stat.S_ISDIR(st.st_mode):
        return await list_directory(full_path, rel_path)
    if stat.S_ISREG(st.st_mode):
        transfer = FileTransfer(path=full_path, name=os.path.basename(full_path), size=st.st_size)
        return await send_file(request, transfer, config)

    logger.warning(f"Not a regular file or directory: {full_path!r}")
    raise web.HTTPNotFound(text=NOT_FOUND)


@web.middleware
async def log_requests(request, handler):
    start = time.monotonic()
    logger.info(f"[REQUEST] {request.method} {request.path}")
    try:
        return await handler(request)
    finally:
        logger.info(f"[COMPLETE] {request.method} {request.path} Duration: {time.monotonic() - start:.3f}s")


def create_app(config: ServerConfig) -> web.Application:
    app = web.Application(middlewares=[log_requests])
    app[CONFIG_KEY] = config
    app.router.add_get('/{path:.*}', handle_path)
    return app
