import os
import sys

from sqlmodel import Session, select

from casedocs.config import ENCRYPTION_KEY
from casedocs.db import engine
from casedocs.encryption import Encryptor
from casedocs.exceptions import DecryptionError
from casedocs.models import Document

# Re-encrypts every document's substituted values under NEW_ENCRYPTION_KEY.
# All-or-nothing: one undecryptable row aborts the run before anything is written.

def rotate(session: Session, current: Encryptor, replacement: Encryptor) -> int:
    documents = session.exec(select(Document)).all()
    rotated = []
    for doc in documents:
        try:
            values = current.decrypt(doc.substituted_values)
        except DecryptionError:
            raise SystemExit(f"Document {doc.id} cannot be decrypted with the current key; nothing written")
        rotated.append((doc, replacement.encrypt(values)))
    for doc, blob in rotated:
        doc.substituted_values = blob
        session.add(doc)
    session.commit()
    return len(rotated)


if __name__ == "__main__":
    new_key = os.getenv("NEW_ENCRYPTION_KEY")
    if not new_key:
        sys.exit("NEW_ENCRYPTION_KEY is required")
    with Session(engine) as session:
        count = rotate(session, Encryptor.from_hex(ENCRYPTION_KEY), Encryptor.from_hex(new_key))
    print(f"Re-encrypted {count} document(s). Deploy NEW_ENCRYPTION_KEY as ENCRYPTION_KEY now.")
