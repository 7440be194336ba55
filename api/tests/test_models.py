from sqlmodel import Session

from casedocs.models import Case, Client, Document, DocumentAuditLog, DocumentTemplate, Tenant, User


def test_every_table_accepts_default_timestamps(test_engine, setup_db):
    with Session(test_engine) as session:
        firm = Tenant(name="Aurora Legal Group")
        session.add(firm)
        session.commit()
        session.refresh(firm)

        staff = User(tenant_id=firm.id, email="alex@auroralegal.com", name="Alex Morgan")
        client_record = Client(tenant_id=firm.id, name="Jane Doe")
        case = Case(tenant_id=firm.id, title="Smith v. State")
        template = DocumentTemplate(tenant_id=firm.id, name="NDA", slug="nda", html_content="<p>x</p>", created_by=1)
        assert case.created_at.tzinfo is not None
        assert template.created_at.tzinfo is not None
        assert template.updated_at.tzinfo is not None
        for row in (staff, client_record, case, template):
            session.add(row)
        session.commit()

        document = Document(
            tenant_id=firm.id,
            template_id=template.id,
            case_id=case.id,
            title="NDA - Smith v. State",
            recipient_email="jane.doe@example.com",
            rendered_html="<p>x</p>",
            pdf_url="http://minio:9000/casedocs/documents/1/1/1.pdf",
            pdf_storage_path="documents/1/1/1.pdf",
            substituted_values="c2VhbGVk",
            created_by=staff.id,
        )
        entry = DocumentAuditLog(tenant_id=firm.id, action="DOCUMENT_RENDERED", user_id=staff.id, user_email=staff.email)
        assert document.created_at.tzinfo is not None
        assert entry.created_at.tzinfo is not None
        session.add(document)
        session.add(entry)
        session.commit()

        for row in (staff, client_record, case, template, document, entry):
            session.refresh(row)
            assert row.id is not None
