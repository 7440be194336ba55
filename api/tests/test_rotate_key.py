import pytest
from sqlmodel import Session, select

import rotate_encryption_key
from casedocs.encryption import Encryptor
from casedocs.models import Document

CURRENT = Encryptor.from_hex("3f" * 32)
REPLACEMENT = Encryptor.from_hex("c4" * 32)


def add_document(session, values, encryptor=CURRENT):
    doc = Document(
        tenant_id=1,
        template_id=1,
        case_id=1,
        title="NDA - Smith v. State",
        recipient_email="jane.doe@example.com",
        rendered_html="<p>x</p>",
        pdf_url="http://minio:9000/casedocs/documents/1/1/1.pdf",
        pdf_storage_path="documents/1/1/1.pdf",
        substituted_values=encryptor.encrypt(values),
        created_by=1,
    )
    session.add(doc)
    session.commit()
    return doc.id


def test_rotate_re_encrypts_every_document(test_engine, setup_db):
    with Session(test_engine) as session:
        first = add_document(session, {"clientName": "Jane Doe"})
        second = add_document(session, {"clientName": "John Roe"})
        assert rotate_encryption_key.rotate(session, CURRENT, REPLACEMENT) == 2

    with Session(test_engine) as session:
        assert REPLACEMENT.decrypt(session.get(Document, first).substituted_values) == {"clientName": "Jane Doe"}
        assert REPLACEMENT.decrypt(session.get(Document, second).substituted_values) == {"clientName": "John Roe"}


def test_rotate_writes_nothing_if_any_row_is_unreadable(test_engine, setup_db):
    with Session(test_engine) as session:
        good = add_document(session, {"clientName": "Jane Doe"})
        add_document(session, {"clientName": "John Roe"}, encryptor=REPLACEMENT)
        with pytest.raises(SystemExit):
            rotate_encryption_key.rotate(session, CURRENT, REPLACEMENT)

    with Session(test_engine) as session:
        blobs = session.exec(select(Document.substituted_values)).all()
        assert CURRENT.decrypt(session.get(Document, good).substituted_values) == {"clientName": "Jane Doe"}
        assert len(blobs) == 2
