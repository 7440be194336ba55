# Fixed data set used for template previews. Never live case data.
# Same shape as lifecycle.build_case_source so any mapping that resolves live
# also resolves here.

SAMPLE_FIRM = {
    "id": 0,
    "name": "Aurora Legal Group",
    "email": "hello@auroralegal.com",
    "phone": "(555) 987-6543",
}

SAMPLE_CLIENT = {
    "id": 0,
    "tenant_id": 0,
    "name": "Jane Doe",
    "email": "jane.doe@example.com",
    "phone": "(555) 123-4567",
    "address": "123 Main Street, Springfield, NY",
}

SAMPLE_ASSIGNED_USER = {
    "id": 0,
    "tenant_id": 0,
    "name": "Alex Morgan, Esq.",
    "email": "alex@auroralegal.com",
    "role": "LAWFIRMSTAFF",
}

SAMPLE_CASE = {
    "id": 0,
    "tenant_id": 0,
    "title": "Smith v. State",
    "reference": "2025-CV-001",
    "case_type": "Civil Litigation",
    "status": "OPEN",
    "amount": "$50,000",
    "description": "Dispute over breach of a commercial lease.",
    "client_id": 0,
    "assigned_to_id": 0,
    "created_at": "2026-01-15T09:00:00+00:00",
}

SAMPLE_TEMPLATE_SOURCE = {
    **SAMPLE_CASE,
    "case": SAMPLE_CASE,
    "client": SAMPLE_CLIENT,
    "assignedUser": SAMPLE_ASSIGNED_USER,
    "assignedTo": SAMPLE_ASSIGNED_USER,
    "firm": SAMPLE_FIRM,
    "tenant": SAMPLE_FIRM,
    "date": "January 15, 2026",
}
