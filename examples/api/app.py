"""API: a JSON REST API built from handler chains.

CRUD for a simple "items" resource. Demonstrates perch's building blocks:
global and path-mounted middleware, per-route middleware chains,
middleware factories, route groups, custom HTTP methods, wildcards, and
an error handler that turns typed failures into JSON.

Run:
    cd examples/api && python app.py
"""

import logging
import threading
from dataclasses import asdict, dataclass

from perch import App, HTTPError, NotFound
from perch.middleware import CORSConfig, cors, request_id, request_logger

logger = logging.getLogger("examples.api")

app = App()

app.use(
    request_logger(),
    request_id(),
    cors(
        CORSConfig(
            allow_origins=("*",),
            allow_methods=("GET", "POST", "PUT", "DELETE", "OPTIONS"),
            allow_headers=("Content-Type", "Authorization"),
        )
    ),
)


async def api_version(request, response, proceed) -> None:
    response.header("X-API-Version", "1.0")
    await proceed()


async def rate_limit(request, response, proceed) -> None:
    response.header("X-RateLimit-Limit", "60")
    await proceed()


app.use("/api", api_version, rate_limit)


@app.error_handler
async def on_error(error, request, response, proceed) -> None:
    """Typed failures become ``{"error", "path"}``; anything else falls through to a 500."""
    if isinstance(error, HTTPError):
        response.status(error.status).json({"error": str(error), "path": request.path})
        return
    logger.warning("Unhandled %s on %s", type(error).__name__, request.path)
    await proceed()


# ---------------------------------------------------------------------------
# Middleware factories
# ---------------------------------------------------------------------------


async def auth(request, response, proceed) -> None:
    if request.headers.get("authorization") != "secret":
        raise HTTPError(401, "Unauthorized")
    await proceed()


def check_role(role: str):
    async def guard(request, response, proceed) -> None:
        if request.headers.get("x-user-role") != role:
            raise HTTPError(403, "Forbidden: Insufficient permissions")
        await proceed()

    return guard


def validate_body(*fields: str):
    async def validate(request, response, proceed) -> None:
        body = request.body if isinstance(request.body, dict) else {}
        missing = [name for name in fields if name not in body]
        if missing:
            raise HTTPError(422, f"Missing required fields: {', '.join(missing)}")
        await proceed()

    return validate


# ---------------------------------------------------------------------------
# In-memory storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Item:
    id: int
    title: str
    done: bool = False


_items: dict[int, Item] = {}
_next_id = 1
_lock = threading.Lock()


def _get_next_id() -> int:
    global _next_id
    with _lock:
        n = _next_id
        _next_id += 1
        return n


def _lookup(raw_id: str) -> Item:
    item = _items.get(int(raw_id)) if raw_id.isdigit() else None
    if item is None:
        raise NotFound("Item not found")
    return item


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


def index(request, response, proceed) -> None:
    response.json({"message": "Welcome to perch!"})


def list_items(request, response, proceed) -> None:
    """List items with optional limit and offset."""
    limit = min(max(request.query.get_int("limit", 50) or 50, 1), 100)
    offset = max(request.query.get_int("offset", 0) or 0, 0)
    with _lock:
        all_items = sorted(_items.values(), key=lambda x: x.id)
    page = all_items[offset : offset + limit]
    response.json(
        {
            "data": [asdict(i) for i in page],
            "meta": {"limit": limit, "offset": offset, "total": len(all_items)},
        }
    )


def get_item(request, response, proceed) -> None:
    response.json({"data": _lookup(request.params["id"])})


def create_item(request, response, proceed) -> None:
    item = Item(id=_get_next_id(), title=str(request.body["title"]).strip())
    with _lock:
        _items[item.id] = item
    response.status(201).header("Location", f"/api/items/{item.id}").json({"data": item})


async def protect_item_zero(request, response, proceed) -> None:
    if request.params["id"] == "0":
        raise HTTPError(409, "Cannot modify item 0")
    await proceed()


def update_item(request, response, proceed) -> None:
    item = _lookup(request.params["id"])
    done = request.body.get("done", item.done)
    updated = Item(id=item.id, title=str(request.body["title"]).strip(), done=bool(done))
    with _lock:
        _items[item.id] = updated
    response.json({"data": updated})


def delete_item(request, response, proceed) -> None:
    item = _lookup(request.params["id"])
    with _lock:
        _items.pop(item.id, None)
    response.status(204)


def file_info(request, response, proceed) -> None:
    response.json({"message": "Wildcard route matched", "file": request.wildcard})


def system_status(request, response, proceed) -> None:
    response.json({"status": "healthy", "items": len(_items)})


app.get("/", index)
app.get("/api/items", list_items)
app.get("/api/items/:id", get_item)
app.post("/api/items", auth, check_role("editor"), validate_body("title"), create_item)
app.put(
    "/api/items/:id",
    auth,
    check_role("editor"),
    validate_body("title"),
    protect_item_zero,
    update_item,
)
app.delete("/api/items/:id", auth, delete_item)
app.get("/api/files/*", file_info)
app.on("REPORT", "/system/status", system_status)


async def admin_header(request, response, proceed) -> None:
    response.header("X-Admin-Access", "true")
    await proceed()


def admin_routes(admin) -> None:
    admin.get("/users", lambda req, res, proceed: res.json({"users": ["ada", "grace"]}))
    admin.group("/system").routes(
        lambda system: system.get("/health", lambda req, res, proceed: res.json({"ok": True}))
    )


app.group("/admin").use(auth, check_role("admin"), admin_header).routes(admin_routes)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.listen(3000)
