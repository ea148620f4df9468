"""XML request and response bodies of the S3 REST protocol.

Success payloads are expected in the S3 namespace; error envelopes carry no
namespace. Lookups accept both so that servers omitting the namespace are
still understood.
"""

from collections.abc import Iterable
from datetime import datetime
from xml.etree import ElementTree as ET

from haos3.clients.pydantic import (
    S3AccessControlPolicy,
    S3Bucket,
    S3CompleteMultipartUploadResponse,
    S3ErrorResponse,
    S3Grant,
    S3Grantee,
    S3InitiateMultipartUploadResponse,
    S3ListMultipartUploadsResponse,
    S3ListObjectsResponse,
    S3ListPartsResponse,
    S3Object,
    S3Owner,
    S3Part,
    S3Upload,
)

S3_NAMESPACE = "http://s3.amazonaws.com/doc/2006-03-01/"
XSI_NAMESPACE = "http://www.w3.org/2001/XMLSchema-instance"

_NS = f"{{{S3_NAMESPACE}}}"


class S3XmlParseError(ValueError):
    """Raised when a body is not the XML document that was expected."""


def _parse(body: bytes, root_name: str) -> ET.Element:
    try:
        root = ET.fromstring(body)
    except ET.ParseError as e:
        msg = f"Malformed XML, expected <{root_name}>: {e}"
        raise S3XmlParseError(msg) from e
    if _local_name(root.tag) != root_name:
        msg = f"Unexpected XML root <{_local_name(root.tag)}>, expected <{root_name}>"
        raise S3XmlParseError(msg)
    return root


def _local_name(tag: str) -> str:
    return tag.rsplit("}", 1)[-1]


def _find(element: ET.Element, name: str) -> ET.Element | None:
    found = element.find(_NS + name)
    if found is None:
        found = element.find(name)
    return found


def _findall(element: ET.Element, name: str) -> list[ET.Element]:
    return element.findall(_NS + name) or element.findall(name)


def _text(element: ET.Element | None, name: str) -> str | None:
    if element is None:
        return None
    found = _find(element, name)
    if found is None:
        return None
    return found.text or ""


def _int(element: ET.Element, name: str) -> int | None:
    value = _text(element, name)
    if not value:
        return None
    try:
        return int(value)
    except ValueError as e:
        msg = f"Invalid integer in <{name}>: {value!r}"
        raise S3XmlParseError(msg) from e


def _bool(element: ET.Element, name: str) -> bool:
    return (_text(element, name) or "").strip().lower() == "true"


def _datetime(element: ET.Element, name: str) -> datetime | None:
    value = _text(element, name)
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError as e:
        msg = f"Invalid timestamp in <{name}>: {value!r}"
        raise S3XmlParseError(msg) from e


def _owner(element: ET.Element, name: str) -> S3Owner | None:
    found = _find(element, name)
    if found is None:
        return None
    return S3Owner(id=_text(found, "ID"), display_name=_text(found, "DisplayName"))


def _common_prefixes(root: ET.Element) -> list[str]:
    return [prefix for node in _findall(root, "CommonPrefixes") if (prefix := _text(node, "Prefix"))]


def parse_error_response(body: bytes) -> S3ErrorResponse:
    root = _parse(body, "Error")
    code = _text(root, "Code")
    if not code:
        msg = "Error response without a code"
        raise S3XmlParseError(msg)
    return S3ErrorResponse(
        code=code,
        message=_text(root, "Message"),
        bucket_name=_text(root, "BucketName"),
        key=_text(root, "Key"),
        resource=_text(root, "Resource"),
        request_id=_text(root, "RequestId"),
        host_id=_text(root, "HostId"),
    )


def parse_list_buckets(body: bytes) -> list[S3Bucket]:
    root = _parse(body, "ListAllMyBucketsResult")
    buckets = _find(root, "Buckets")
    if buckets is None:
        return []
    return [
        S3Bucket(name=_text(node, "Name") or "", creation_date=_datetime(node, "CreationDate"))
        for node in _findall(buckets, "Bucket")
    ]


def parse_list_objects(body: bytes) -> S3ListObjectsResponse:
    root = _parse(body, "ListBucketResult")
    contents = [
        S3Object(
            key=_text(node, "Key") or "",
            last_modified=_datetime(node, "LastModified"),
            etag=_text(node, "ETag"),
            size=_int(node, "Size"),
            storage_class=_text(node, "StorageClass"),
            owner=_owner(node, "Owner"),
        )
        for node in _findall(root, "Contents")
    ]
    return S3ListObjectsResponse(
        name=_text(root, "Name"),
        prefix=_text(root, "Prefix"),
        marker=_text(root, "Marker"),
        next_marker=_text(root, "NextMarker"),
        delimiter=_text(root, "Delimiter"),
        max_keys=_int(root, "MaxKeys"),
        is_truncated=_bool(root, "IsTruncated"),
        contents=contents,
        common_prefixes=_common_prefixes(root),
    )


def parse_list_multipart_uploads(body: bytes) -> S3ListMultipartUploadsResponse:
    root = _parse(body, "ListMultipartUploadsResult")
    uploads = [
        S3Upload(
            key=_text(node, "Key") or "",
            upload_id=_text(node, "UploadId") or "",
            initiated=_datetime(node, "Initiated"),
            storage_class=_text(node, "StorageClass"),
            initiator=_owner(node, "Initiator"),
            owner=_owner(node, "Owner"),
        )
        for node in _findall(root, "Upload")
    ]
    return S3ListMultipartUploadsResponse(
        bucket=_text(root, "Bucket"),
        key_marker=_text(root, "KeyMarker"),
        upload_id_marker=_text(root, "UploadIdMarker"),
        next_key_marker=_text(root, "NextKeyMarker"),
        next_upload_id_marker=_text(root, "NextUploadIdMarker"),
        prefix=_text(root, "Prefix"),
        delimiter=_text(root, "Delimiter"),
        max_uploads=_int(root, "MaxUploads"),
        is_truncated=_bool(root, "IsTruncated"),
        uploads=uploads,
        common_prefixes=_common_prefixes(root),
    )


def parse_list_parts(body: bytes) -> S3ListPartsResponse:
    root = _parse(body, "ListPartsResult")
    parts = [
        S3Part(
            part_number=_int(node, "PartNumber") or 0,
            etag=_text(node, "ETag") or "",
            size=_int(node, "Size"),
            last_modified=_datetime(node, "LastModified"),
        )
        for node in _findall(root, "Part")
    ]
    return S3ListPartsResponse(
        bucket=_text(root, "Bucket"),
        key=_text(root, "Key"),
        upload_id=_text(root, "UploadId"),
        part_number_marker=_int(root, "PartNumberMarker"),
        next_part_number_marker=_int(root, "NextPartNumberMarker"),
        max_parts=_int(root, "MaxParts"),
        is_truncated=_bool(root, "IsTruncated"),
        parts=parts,
    )


def parse_initiate_multipart_upload(body: bytes) -> S3InitiateMultipartUploadResponse:
    root = _parse(body, "InitiateMultipartUploadResult")
    upload_id = _text(root, "UploadId")
    if not upload_id:
        msg = "Initiate multipart upload response without an upload id"
        raise S3XmlParseError(msg)
    return S3InitiateMultipartUploadResponse(bucket=_text(root, "Bucket"), key=_text(root, "Key"), upload_id=upload_id)


def parse_complete_multipart_upload(body: bytes) -> S3CompleteMultipartUploadResponse:
    root = _parse(body, "CompleteMultipartUploadResult")
    return S3CompleteMultipartUploadResponse(
        location=_text(root, "Location"),
        bucket=_text(root, "Bucket"),
        key=_text(root, "Key"),
        etag=_text(root, "ETag"),
    )


def parse_access_control_policy(body: bytes) -> S3AccessControlPolicy:
    root = _parse(body, "AccessControlPolicy")
    acl = _find(root, "AccessControlList")
    grants = []
    for node in _findall(acl, "Grant") if acl is not None else []:
        grantee = _find(node, "Grantee")
        grants.append(
            S3Grant(
                grantee=S3Grantee(
                    id=_text(grantee, "ID"),
                    display_name=_text(grantee, "DisplayName"),
                    email_address=_text(grantee, "EmailAddress"),
                    uri=_text(grantee, "URI"),
                    type=grantee.get(f"{{{XSI_NAMESPACE}}}type") if grantee is not None else None,
                ),
                permission=_text(node, "Permission") or "",
            )
        )
    return S3AccessControlPolicy(owner=_owner(root, "Owner"), grants=grants)


def _serialize(root: ET.Element) -> bytes:
    return ET.tostring(root, encoding="utf-8", xml_declaration=False)


def serialize_complete_multipart_upload(parts: Iterable[S3Part]) -> bytes:
    """Build the completion manifest. Parts are written in ascending part number order."""
    root = ET.Element("CompleteMultipartUpload", xmlns=S3_NAMESPACE)
    for part in sorted(parts, key=lambda p: p.part_number):
        node = ET.SubElement(root, "Part")
        ET.SubElement(node, "PartNumber").text = str(part.part_number)
        ET.SubElement(node, "ETag").text = part.etag
    return _serialize(root)


def serialize_create_bucket_configuration(location_constraint: str) -> bytes:
    root = ET.Element("CreateBucketConfiguration", xmlns=S3_NAMESPACE)
    ET.SubElement(root, "LocationConstraint").text = location_constraint
    return _serialize(root)


def build_error_response(error: S3ErrorResponse) -> bytes:
    """Render an error envelope. Used by test servers and diagnostics."""
    root = ET.Element("Error")
    for tag, value in (
        ("Code", error.code),
        ("Message", error.message),
        ("BucketName", error.bucket_name),
        ("Key", error.key),
        ("Resource", error.resource),
        ("RequestId", error.request_id),
        ("HostId", error.host_id),
    ):
        if value is not None:
            ET.SubElement(root, tag).text = value
    return _serialize(root)
