"""
Provide a MongoDB client with paging and sorting shortcuts.

Sort parameters follow the `"-field"` convention for descending order and may
be given as a comma separated string or a list of field names.
"""
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import pymongo
from pymongo.collection import Collection
from pymongo.results import DeleteResult, InsertOneResult, UpdateResult
import structlog as logging

from conduit.common import AbstractClient
from conduit.settings import resolve


_LOGGER = logging.getLogger(__name__)

Client = AbstractClient
Document = Dict[str, Any]
SortParameters = Union[str, Sequence[str]]

DEFAULT_TIMEOUT = 5
Symbols = [
    "count",
    "disconnect",
    "does_doc_exist",
    "find_all",
    "find_all_sorted",
    "find_all_specific_fields",
    "find_all_without_paging",
    "find_one",
    "find_one_sorted",
    "find_one_specified_field",
    "insert",
    "pipe_all",
    "pipe_one",
    "remove",
    "remove_all",
    "update",
    "update_all",
    "upsert",
]


# helpers


def _collection(client: Client, dbname: str, collection: str) -> Collection:
    return client.raw_client[dbname][collection]


def _sort_spec(sort_parameters: SortParameters) -> List[Tuple[str, int]]:
    if isinstance(sort_parameters, str):
        sort_parameters = sort_parameters.split(",")

    result = []
    for field in sort_parameters:
        field = field.strip()
        if not field:
            continue
        if field.startswith("-"):
            result.append((field[1:], pymongo.DESCENDING))
        else:
            result.append((field.lstrip("+"), pymongo.ASCENDING))
    if not result:
        raise ValueError("at least one sort field must be provided")
    return result


def _page(page_num: int, page_size: int) -> Tuple[int, int]:
    if page_num < 1 or page_size < 1:
        raise ValueError("`page_num` and `page_size` must be greater than 0")
    return (page_num - 1) * page_size, page_size


def _is_operator_document(document: Document) -> bool:
    return bool(document) and all(key.startswith("$") for key in document)


# client interface


def connect(*args, **kwargs) -> Client:
    """Connect to a MongoDB server.

    Parameters
    ----------
    host : str
        The host string of a server.
    port : Union[int, str], optional
        Defaults to 27017.
    username : str, optional
    password : str, optional
    database : str, optional
        The database to authenticate against.
    timeout : int, optional
        Server selection and connect timeout in seconds.
        Values `<= 0` fall back to the 5 second default.
    """
    host = resolve(kwargs, "mongodb", "host", default="127.0.0.1")
    port = resolve(kwargs, "mongodb", "port", default=27017, cast=int)
    username = resolve(kwargs, "mongodb", "username", default=None) or None
    password = resolve(kwargs, "mongodb", "password", default=None) or None
    database = resolve(kwargs, "mongodb", "database", default=None) or None
    timeout = resolve(kwargs, "mongodb", "timeout", default=DEFAULT_TIMEOUT, cast=int)
    if timeout <= 0:
        timeout = DEFAULT_TIMEOUT

    options = {
        "serverSelectionTimeoutMS": timeout * 1000,
        "connectTimeoutMS": timeout * 1000,
    }
    if username is not None:
        options.update(username=username, password=password)
        if database is not None:
            options["authSource"] = database

    raw_client = pymongo.MongoClient(host=host, port=port, **options)
    try:
        # Fail on connect rather than on the first command.
        raw_client.admin.command("ping")
    except Exception:
        raw_client.close()
        raise
    _LOGGER.info("connected to mongodb", host=host, port=port, database=database)

    client = Client(raw_client, name="mongodb", host=host, port=port, database=database)
    return client.bind(globals(), Symbols)


def disconnect(client: Client):
    _LOGGER.info("disconnecting from mongodb", host=client.meta.get("host"))
    client.raw_client.close()


# writes


def insert(client: Client, dbname: str, collection: str, document: Document) -> InsertOneResult:
    return _collection(client, dbname, collection).insert_one(document)


def update(client: Client, dbname: str, collection: str, selector: Document, updator: Document) -> UpdateResult:
    """Update the first document matching `selector`.

    An `updator` without `$` operators replaces the matched document.
    """
    coll = _collection(client, dbname, collection)
    if _is_operator_document(updator):
        return coll.update_one(selector, updator)
    return coll.replace_one(selector, updator)


def update_all(client: Client, dbname: str, collection: str, selector: Document, updator: Document) -> UpdateResult:
    if not _is_operator_document(updator):
        raise ValueError("`updator` must only contain update operators to update many documents")
    return _collection(client, dbname, collection).update_many(selector, updator)


def upsert(client: Client, dbname: str, collection: str, selector: Document, updator: Document) -> UpdateResult:
    coll = _collection(client, dbname, collection)
    if _is_operator_document(updator):
        return coll.update_one(selector, updator, upsert=True)
    return coll.replace_one(selector, updator, upsert=True)


def remove(client: Client, dbname: str, collection: str, query: Document) -> DeleteResult:
    return _collection(client, dbname, collection).delete_one(query)


def remove_all(client: Client, dbname: str, collection: str, query: Document) -> int:
    """Remove every document matching `query` and return how many were removed."""
    return _collection(client, dbname, collection).delete_many(query).deleted_count


# reads


def find_one(client: Client, dbname: str, collection: str, query: Document) -> Optional[Document]:
    return _collection(client, dbname, collection).find_one(query)


def find_one_specified_field(
    client: Client, dbname: str, collection: str, query: Document, fields: Document
) -> Optional[Document]:
    return _collection(client, dbname, collection).find_one(query, projection=fields)


def find_one_sorted(
    client: Client, dbname: str, collection: str, query: Document, sort_parameters: SortParameters
) -> Optional[Document]:
    return _collection(client, dbname, collection).find_one(query, sort=_sort_spec(sort_parameters))


def find_all(
    client: Client, dbname: str, collection: str, query: Document, page_num: int, page_size: int
) -> List[Document]:
    """Return page `page_num` (starting at 1) of `page_size` documents matching `query`."""
    skip, limit = _page(page_num, page_size)
    return list(_collection(client, dbname, collection).find(query).skip(skip).limit(limit))


def find_all_sorted(
    client: Client,
    dbname: str,
    collection: str,
    query: Document,
    sort_parameters: SortParameters,
    page_num: int,
    page_size: int,
) -> List[Document]:
    skip, limit = _page(page_num, page_size)
    cursor = _collection(client, dbname, collection).find(query).sort(_sort_spec(sort_parameters))
    return list(cursor.skip(skip).limit(limit))


def find_all_without_paging(client: Client, dbname: str, collection: str, query: Document) -> List[Document]:
    return list(_collection(client, dbname, collection).find(query))


def find_all_specific_fields(
    client: Client, dbname: str, collection: str, query: Document, fields: Document
) -> List[Document]:
    return list(_collection(client, dbname, collection).find(query, projection=fields))


def count(client: Client, dbname: str, collection: str, query: Document) -> int:
    return _collection(client, dbname, collection).count_documents(query)


def does_doc_exist(client: Client, dbname: str, collection: str, query: Document) -> bool:
    return _collection(client, dbname, collection).count_documents(query, limit=1) > 0


# aggregation


def pipe_one(client: Client, dbname: str, collection: str, pipeline: List[Document]) -> Optional[Document]:
    """Run an aggregation pipeline and return its first result, if any."""
    with _collection(client, dbname, collection).aggregate(pipeline) as cursor:
        return next(iter(cursor), None)


def pipe_all(client: Client, dbname: str, collection: str, pipeline: List[Document]) -> List[Document]:
    return list(_collection(client, dbname, collection).aggregate(pipeline))
