"""Test XML bodies of the S3 protocol."""

from datetime import UTC, datetime
from xml.etree import ElementTree as ET

import pytest

from haos3.clients.messages import (
    S3XmlParseError,
    parse_access_control_policy,
    parse_error_response,
    parse_list_buckets,
    parse_list_multipart_uploads,
    parse_list_objects,
    parse_list_parts,
    serialize_complete_multipart_upload,
    serialize_create_bucket_configuration,
)
from haos3.clients.pydantic import S3Part

NS = 'xmlns="http://s3.amazonaws.com/doc/2006-03-01/"'


def test_parse_list_objects() -> None:
    """Test a bucket listing page with common prefixes."""
    body = f"""<?xml version="1.0" encoding="UTF-8"?>
    <ListBucketResult {NS}>
        <Name>bucket</Name><Prefix></Prefix><Marker></Marker><NextMarker>docs/</NextMarker>
        <MaxKeys>2</MaxKeys><Delimiter>/</Delimiter><IsTruncated>true</IsTruncated>
        <Contents>
            <Key>a.txt</Key><LastModified>2024-01-01T10:00:00.000Z</LastModified>
            <ETag>&quot;abc&quot;</ETag><Size>3</Size><StorageClass>STANDARD</StorageClass>
            <Owner><ID>owner</ID><DisplayName>Owner</DisplayName></Owner>
        </Contents>
        <CommonPrefixes><Prefix>docs/</Prefix></CommonPrefixes>
    </ListBucketResult>""".encode()

    page = parse_list_objects(body)

    assert page.is_truncated is True
    assert page.next_marker == "docs/"
    assert page.max_keys == 2
    assert page.common_prefixes == ["docs/"]
    (obj,) = page.contents
    assert obj.key == "a.txt"
    assert obj.etag == '"abc"'
    assert obj.size == 3
    assert obj.last_modified == datetime(2024, 1, 1, 10, tzinfo=UTC)
    assert obj.owner is not None
    assert obj.owner.display_name == "Owner"


def test_parse_without_namespace() -> None:
    """Test that servers omitting the namespace are understood."""
    body = b"<ListBucketResult><IsTruncated>false</IsTruncated><Contents><Key>k</Key></Contents></ListBucketResult>"
    page = parse_list_objects(body)
    assert page.is_truncated is False
    assert [obj.key for obj in page.contents] == ["k"]


def test_parse_list_buckets() -> None:
    """Test the service listing."""
    body = f"""<ListAllMyBucketsResult {NS}><Owner><ID>o</ID></Owner><Buckets>
        <Bucket><Name>one</Name><CreationDate>2024-01-01T00:00:00.000Z</CreationDate></Bucket>
        <Bucket><Name>two</Name></Bucket>
    </Buckets></ListAllMyBucketsResult>""".encode()
    buckets = parse_list_buckets(body)
    assert [bucket.name for bucket in buckets] == ["one", "two"]
    assert buckets[1].creation_date is None


def test_parse_list_multipart_uploads() -> None:
    """Test an incomplete upload listing page."""
    body = f"""<ListMultipartUploadsResult {NS}>
        <Bucket>bucket</Bucket><KeyMarker></KeyMarker><UploadIdMarker></UploadIdMarker>
        <NextKeyMarker>b</NextKeyMarker><NextUploadIdMarker>id-2</NextUploadIdMarker>
        <MaxUploads>2</MaxUploads><IsTruncated>true</IsTruncated>
        <Upload><Key>a</Key><UploadId>id-1</UploadId><Initiated>2024-01-01T00:00:00.000Z</Initiated></Upload>
        <Upload><Key>b</Key><UploadId>id-2</UploadId><Initiated>2024-01-02T00:00:00.000Z</Initiated></Upload>
    </ListMultipartUploadsResult>""".encode()
    page = parse_list_multipart_uploads(body)
    assert (page.next_key_marker, page.next_upload_id_marker) == ("b", "id-2")
    assert [(upload.key, upload.upload_id) for upload in page.uploads] == [("a", "id-1"), ("b", "id-2")]


def test_parse_list_parts() -> None:
    """Test a part listing page."""
    body = f"""<ListPartsResult {NS}>
        <Bucket>bucket</Bucket><Key>key</Key><UploadId>id</UploadId>
        <PartNumberMarker>0</PartNumberMarker><NextPartNumberMarker>2</NextPartNumberMarker>
        <MaxParts>2</MaxParts><IsTruncated>true</IsTruncated>
        <Part><PartNumber>1</PartNumber><ETag>"e1"</ETag><Size>5242880</Size></Part>
        <Part><PartNumber>2</PartNumber><ETag>"e2"</ETag><Size>100</Size></Part>
    </ListPartsResult>""".encode()
    page = parse_list_parts(body)
    assert page.next_part_number_marker == 2
    assert [(part.part_number, part.etag, part.size) for part in page.parts] == [
        (1, '"e1"', 5242880),
        (2, '"e2"', 100),
    ]


def test_parse_error_response() -> None:
    """Test an error envelope."""
    body = b"""<Error><Code>NoSuchKey</Code><Message>gone</Message><Key>k</Key>
        <RequestId>r</RequestId><HostId>h</HostId></Error>"""
    error = parse_error_response(body)
    assert (error.code, error.message, error.key) == ("NoSuchKey", "gone", "k")
    assert (error.request_id, error.host_id) == ("r", "h")


@pytest.mark.parametrize(
    "body",
    [b"", b"not xml", b"<Error><Message>no code</Message></Error>", b"<ListBucketResult/>"],
)
def test_parse_error_response_rejects(body: bytes) -> None:
    """Test that anything but a coded error envelope is rejected."""
    with pytest.raises(S3XmlParseError):
        parse_error_response(body)


def test_parse_access_control_policy() -> None:
    """Test grants of an access control policy."""
    body = f"""<AccessControlPolicy {NS} xmlns:xsi="http://www.w3.org/2001/XMLSchema-instance">
        <Owner><ID>owner</ID></Owner>
        <AccessControlList>
            <Grant><Grantee xsi:type="CanonicalUser"><ID>owner</ID></Grantee>
                <Permission>FULL_CONTROL</Permission></Grant>
            <Grant><Grantee xsi:type="Group"><URI>http://acs.amazonaws.com/groups/global/AllUsers</URI></Grantee>
                <Permission>READ</Permission></Grant>
        </AccessControlList>
    </AccessControlPolicy>""".encode()
    policy = parse_access_control_policy(body)
    assert [(grant.grantee.type, grant.permission) for grant in policy.grants] == [
        ("CanonicalUser", "FULL_CONTROL"),
        ("Group", "READ"),
    ]


def test_serialize_complete_multipart_upload() -> None:
    """Test that the manifest is written in ascending part order."""
    body = serialize_complete_multipart_upload(
        [S3Part(part_number=2, etag='"b"'), S3Part(part_number=1, etag='"a"')]
    )
    root = ET.fromstring(body)
    ns = "{http://s3.amazonaws.com/doc/2006-03-01/}"
    assert root.tag == f"{ns}CompleteMultipartUpload"
    assert [
        (part.findtext(f"{ns}PartNumber"), part.findtext(f"{ns}ETag")) for part in root.findall(f"{ns}Part")
    ] == [("1", '"a"'), ("2", '"b"')]


def test_serialize_create_bucket_configuration() -> None:
    """Test the bucket location constraint body."""
    body = serialize_create_bucket_configuration("eu-west-1")
    assert b"<LocationConstraint>eu-west-1</LocationConstraint>" in body


@pytest.mark.parametrize(
    "body",
    [
        f"<ListPartsResult {NS}><Part><PartNumber>one</PartNumber><ETag>x</ETag></Part></ListPartsResult>",
        f"<ListPartsResult {NS}><MaxParts>1e3</MaxParts></ListPartsResult>",
        f"<ListAllMyBucketsResult {NS}><Buckets><Bucket><Name>b</Name>"
        "<CreationDate>last week</CreationDate></Bucket></Buckets></ListAllMyBucketsResult>",
    ],
)
def test_invalid_values_are_parse_errors(body: str) -> None:
    """Test that malformed numbers and timestamps are reported as parse errors."""
    parser = parse_list_parts if body.startswith("<ListPartsResult") else parse_list_buckets
    with pytest.raises(S3XmlParseError):
        parser(body.encode())
