"""tapi storage - YAML collections and environments under ~/.tapi."""

import logging
import os
import re
import unicodedata
from pathlib import Path

import yaml

from tapi import core
from tapi.errors import StorageError
from tapi.models import Collection, Environment, Request

logger = logging.getLogger(__name__)

COLLECTIONS = "collections"
ENVIRONMENTS = "environments"


def storage_path(sub_dir: str) -> Path:
    """~/.tapi/<sub_dir>, resolved against the current GLOBAL_DIR."""
    return core.GLOBAL_DIR / sub_dir


def ensure_dir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error("mkdir failed for %s: %s", path, e)
        raise StorageError(f"cannot create directory {path}: {e}") from e
    return path


def slugify(name: str) -> str:
    """File-name slug: "My API v2" -> "my-api-v2"."""
    ascii_name = unicodedata.normalize("NFKD", name).encode("ascii", "ignore").decode()
    slug = re.sub(r"[^a-z0-9]+", "-", ascii_name.lower()).strip("-")
    return slug or "untitled"


def format_name(stem: str) -> str:
    """Readable name from a file stem: "my-api_v2" -> "My Api V2"."""
    words = stem.replace("-", " ").replace("_", " ").split()
    return " ".join(w[:1].upper() + w[1:].lower() for w in words)


def _read_yaml(path: Path):
    with open(path) as f:
        return yaml.safe_load(f)


def _write_atomic(path: Path, data: dict) -> None:
    """Write YAML to a temp file, then rename it over path."""
    tmp_path = path.with_name(path.name + ".tmp")
    text = yaml.safe_dump(data, sort_keys=False, allow_unicode=True)
    try:
        tmp_path.write_text(text, encoding="utf-8")
        os.replace(tmp_path, path)
    except OSError as e:
        logger.error("Failed to write %s: %s", path, e)
        tmp_path.unlink(missing_ok=True)
        raise StorageError(f"failed to save {path}: {e}") from e


def _load_dir(sub_dir: str, kind: str) -> list[tuple[Path, dict]]:
    """Parse every *.yaml in a storage dir, skipping unreadable files."""
    directory = storage_path(sub_dir)
    if not directory.is_dir():
        return []
    records = []
    for file in sorted(directory.glob("*.yaml")):
        try:
            data = _read_yaml(file)
        except (OSError, yaml.YAMLError) as e:
            logger.error("Failed to read %s file %s: %s", kind, file, e)
            continue
        if not isinstance(data, dict):
            logger.error("Failed to parse %s file %s: not a mapping", kind, file)
            continue
        records.append((file, data))
    return records


# ── Collections ──────────────────────────────────────────────────────────


def collection_file(name: str) -> Path:
    return storage_path(COLLECTIONS) / f"{slugify(name)}.yaml"


def _load_collection_files() -> list[tuple[Path, Collection]]:
    collections = []
    for file, data in _load_dir(COLLECTIONS, "collection"):
        collection = Collection.from_dict(data)
        if not collection.name:
            collection.name = format_name(file.stem)
        collections.append((file, collection))
        logger.info("Loaded collection %r from %s", collection.name, file)
    return collections


def load_collections() -> list[Collection]:
    """Load every stored collection, sorted by file name.

    Corrupt files are logged and skipped. A record without a name is named
    after its file.
    """
    return [collection for _, collection in _load_collection_files()]


def find_collection(name: str) -> tuple[Path, Collection]:
    """Find a stored collection and the file it was read from.

    Matches the stored name case-insensitively, or its slug. The file name
    does not have to be the slug of the stored name.
    """
    lower = name.lower()
    slug = slugify(name)
    for file, collection in _load_collection_files():
        if collection.name.lower() == lower or slugify(collection.name) == slug:
            return file, collection
    raise StorageError(f"collection {name!r} not found")


def get_collection(name: str) -> Collection:
    return find_collection(name)[1]


def get_request(collection: Collection, name: str) -> Request:
    req = collection.find_request(name)
    if req is None:
        raise StorageError(f"request {name!r} not found in collection {collection.name!r}")
    return req


def save_collection(collection: Collection) -> Path:
    path = collection_file(collection.name)
    ensure_dir(path.parent)
    _write_atomic(path, collection.to_dict())
    logger.info("Saved collection %r to %s", collection.name, path)
    return path


def delete_collection(name: str) -> Path:
    path, _ = find_collection(name)
    try:
        path.unlink()
    except OSError as e:
        raise StorageError(f"failed to delete {path}: {e}") from e
    logger.info("Deleted collection %r (%s)", name, path)
    return path


def export_collection(name: str, dest: str | Path) -> Path:
    """Copy the stored YAML of a collection to dest."""
    src, _ = find_collection(name)
    try:
        data = src.read_bytes()
    except OSError as e:
        raise StorageError(f"failed to read {src}: {e}") from e
    dest = Path(dest).expanduser()
    try:
        dest.write_bytes(data)
    except OSError as e:
        raise StorageError(f"failed to write export: {e}") from e
    logger.info("Exported collection %r to %s", name, dest)
    return dest


def create_demo_collection() -> Path:
    """Save the starter collection shown to first-time users."""
    demo = Collection(
        name="Demo Collection",
        base_url="https://httpbin.org",
        requests=[
            Request(name="Get IP", method="GET", url="/ip"),
            Request(
                name="Post JSON",
                method="POST",
                url="/post",
                headers={"Content-Type": "application/json"},
                body='{"message": "Hello TAPI!"}',
            ),
            Request(name="Get Status", method="GET", url="/status/:code"),
        ],
    )
    path = save_collection(demo)
    logger.info("Created demo collection")
    return path


# ── Environments ─────────────────────────────────────────────────────────


def environment_file(name: str) -> Path:
    return storage_path(ENVIRONMENTS) / f"{slugify(name)}.yaml"


def _load_environment_files() -> list[tuple[Path, Environment]]:
    environments = []
    for file, data in _load_dir(ENVIRONMENTS, "environment"):
        env = Environment.from_dict(data)
        if not env.name:
            env.name = format_name(file.stem)
        environments.append((file, env))
        logger.info("Loaded environment %r from %s", env.name, file)
    return environments


def load_environments() -> list[Environment]:
    return [env for _, env in _load_environment_files()]


def find_environment(name: str) -> tuple[Path, Environment]:
    lower = name.lower()
    slug = slugify(name)
    for file, env in _load_environment_files():
        if env.name.lower() == lower or slugify(env.name) == slug:
            return file, env
    raise StorageError(f"environment {name!r} not found")


def get_environment(name: str) -> Environment:
    return find_environment(name)[1]


def save_environment(env: Environment) -> Path:
    path = environment_file(env.name)
    ensure_dir(path.parent)
    _write_atomic(path, env.to_dict())
    logger.info("Saved environment %r to %s", env.name, path)
    return path


def delete_environment(name: str) -> Path:
    path, _ = find_environment(name)
    try:
        path.unlink()
    except OSError as e:
        raise StorageError(f"failed to delete {path}: {e}") from e
    logger.info("Deleted environment %r (%s)", name, path)
    return path
