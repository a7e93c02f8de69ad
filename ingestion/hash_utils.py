import hashlib

CHILD_ID_SEPARATOR = "|"


def sha1_text(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8")).hexdigest()


def parent_id(text: str) -> str:
    return sha1_text(text)


def child_id(parent: str, text: str) -> str:
    # Parent linkage is part of the id: equal text under two parents gives two records.
    return sha1_text(f"{parent}{CHILD_ID_SEPARATOR}{text}")
