"""
Provide an S3 client for storing documents under `/<doc_type>/<filename>` keys.
"""
import os
import shutil
from typing import Any, BinaryIO, Dict, Optional, Union

import boto3
from botocore.exceptions import ClientError
import structlog as logging

from conduit.common import WrapperError
import conduit.common.kv as KV
from conduit.settings import resolve


_LOGGER = logging.getLogger(__name__)

DOWNLOAD_DIRECTORY = "images"
Symbols = KV.Symbols + ["download", "download_image", "upload"]


# client interface


def connect(*args, **kwargs) -> KV.Client:
    """Connect to S3.

    Parameters
    ----------
    aws_access_key_id : str, optional
        Extracts from the environment variable "AWS_ACCESS_KEY_ID" by default.

    aws_secret_access_key : str, optional
        Extracts from the environment variable "AWS_SECRET_ACCESS_KEY" by default.

    region_name : str, optional
        Extracts from the environment variable "AWS_REGION_NAME" by default.

    endpoint_url : str, optional
        Extracts from the environment variable "AWS_ENDPOINT_URL" by default.

    Raises
    ------
    WrapperError
        When no usable credentials could be resolved.
    """
    aws_access_key_id = resolve(kwargs, "aws", "access_key_id", default=None, kwarg="aws_access_key_id")
    aws_secret_access_key = resolve(kwargs, "aws", "secret_access_key", default=None, kwarg="aws_secret_access_key")
    region_name = resolve(kwargs, "aws", "region_name", default=None)
    endpoint_url = resolve(kwargs, "aws", "endpoint_url", default=None)

    session = boto3.Session(
        aws_access_key_id=aws_access_key_id,
        aws_secret_access_key=aws_secret_access_key,
        region_name=region_name,
    )
    credentials = session.get_credentials()
    if credentials is None or not credentials.access_key or not credentials.secret_key:
        raise WrapperError("bad credentials: no access key id and secret access key could be resolved")

    s3 = session.resource("s3", endpoint_url=endpoint_url)
    _LOGGER.info("connected to s3", region=region_name, endpoint=endpoint_url)
    client = KV.Client(s3, name="s3", region_name=region_name, endpoint_url=endpoint_url)
    return client.bind(globals(), Symbols)


def object_path(doc_type: str, filename: str) -> str:
    return "/" + doc_type + "/" + filename


def upload(
    client: KV.Client,
    bucket: str,
    data: Union[bytes, BinaryIO],
    doc_type: str,
    filename: str,
    content_type: Optional[str] = None,
) -> Dict[str, Any]:
    """Upload a private, server-side encrypted attachment to `bucket`.

    Parameters
    ----------
    data : Union[bytes, BinaryIO]
        The document contents, read completely before the upload starts.
    content_type : Optional[str]
        Stored as the object's Content-Type when given.
    """
    if hasattr(data, "read"):
        data = data.read()

    params = {
        "Body": data,
        "ACL": "private",
        "ContentLength": len(data),
        "ContentDisposition": "attachment",
        "ServerSideEncryption": "AES256",
    }
    if content_type:
        params["ContentType"] = content_type

    key = object_path(doc_type, filename)
    _LOGGER.debug("uploading object", bucket=bucket, key=key, size=len(data))
    return client.raw_client.Object(bucket, key).put(**params)


def download_image(client: KV.Client, bucket: str, doc_type: str, filename: str) -> Dict[str, Any]:
    """Return the raw get-object response, streaming body included."""
    return client.raw_client.Object(bucket, object_path(doc_type, filename)).get()


def download(
    client: KV.Client, bucket: str, doc_type: str, filename: str, directory: str = DOWNLOAD_DIRECTORY
) -> str:
    """Download an object into `directory` and return its local path.

    The object is fetched before anything is written, so a missing key leaves
    no empty file behind.
    """
    response = download_image(client, bucket, doc_type, filename)

    os.makedirs(directory, exist_ok=True)
    path = os.path.join(directory, filename)
    with open(path, "wb") as f:
        shutil.copyfileobj(response["Body"], f)
    _LOGGER.debug("downloaded object", bucket=bucket, path=path)
    return path


# kv interface


def kv_get(client: KV.Client, bucket, key: str) -> Optional[BinaryIO]:
    s3 = client.raw_client
    bucket = s3.Bucket(name=bucket)
    try:
        return bucket.Object(key=key).get().get("Body", None)
    except ClientError as e:
        if e.response["Error"]["Code"] == "NoSuchKey":
            return None
        raise


def kv_set(
    client: KV.Client, bucket: str, key: Optional[str] = None, data: Optional[Union[bytes, BinaryIO]] = None
) -> Any:
    """Set a key with S3 (either creates a bucket or an object).

    Parameters
    ----------
    bucket : str
        Name of the bucket to interact with.

    key : Optional[str]
        Name of the object to interact with.
        If set to None, creates a bucket instead of an object.

    data : Optional[Union[bytes, BinaryIO]]
        Data can either be a bytes object or an IO bytes stream.
        If data is not set, a ValueError will be raised unless key is also
        unset. In that case, a bucket will be created.
    """
    s3 = client.raw_client

    if key is not None and data is not None:
        # Create Object.
        return s3.Object(bucket, key).put(Body=data)
    elif key is None and data is None:
        # Create Bucket.
        try:
            return s3.Bucket(bucket).create()
        except ClientError as e:
            if e.response["Error"]["Code"] == "BucketAlreadyOwnedByYou":
                return None
            raise
    else:
        raise ValueError("either `bucket`, `key`, and `data` must be set " "or only `bucket`")


def kv_pop(client: KV.Client, bucket, key: str) -> Any:
    s3 = client.raw_client
    return s3.Object(bucket, key).delete()
