import worker


class RecordingMinio:
    def __init__(self):
        self.removed = []

    def remove_object(self, bucket, key):
        self.removed.append((bucket, key))


def test_purge_removes_orphaned_pdf(monkeypatch):
    fake = RecordingMinio()
    monkeypatch.setattr(worker, "minio", fake)
    result = worker.purge_orphaned_pdf("documents/1/7/1767225600000.pdf")
    assert result == {"key": "documents/1/7/1767225600000.pdf", "removed": True}
    assert fake.removed == [(worker.MINIO_BUCKET, "documents/1/7/1767225600000.pdf")]


def test_purge_refuses_keys_outside_documents(monkeypatch):
    fake = RecordingMinio()
    monkeypatch.setattr(worker, "minio", fake)
    result = worker.purge_orphaned_pdf("templates/logo.png")
    assert result == {"key": "templates/logo.png", "removed": False}
    assert fake.removed == []
