"""Shared fixtures: an in-memory stand-in for the Firestore client."""

import copy

import pytest

import function_locks


class FakeSnapshot:
    def __init__(self, doc_id, data):
        self.id = doc_id
        self._data = copy.deepcopy(data)

    @property
    def exists(self):
        return self._data is not None

    def to_dict(self):
        return copy.deepcopy(self._data)


class FakeDocRef:
    def __init__(self, db, collection, doc_id):
        self._db = db
        self._collection = collection
        self.id = doc_id

    @property
    def _key(self):
        return (self._collection, self.id)

    def get(self, transaction=None):
        return FakeSnapshot(self.id, self._db.docs.get(self._key))

    def set(self, data, merge=False):
        if self._key in self._db.fail_writes:
            raise RuntimeError(f"write rejected for {self.id}")
        self._db.writes.append((self._key, copy.deepcopy(data), merge))
        if merge and self._key in self._db.docs:
            self._db.docs[self._key].update(copy.deepcopy(data))
        else:
            self._db.docs[self._key] = copy.deepcopy(data)

    def delete(self):
        if self._key in self._db.fail_deletes:
            raise RuntimeError(f"delete rejected for {self.id}")
        self._db.docs.pop(self._key, None)


class FakeCollection:
    def __init__(self, db, name):
        self._db = db
        self._name = name

    def document(self, doc_id):
        return FakeDocRef(self._db, self._name, doc_id)


class FakeTransaction:
    def set(self, ref, data, merge=False):
        ref.set(data, merge=merge)


class FakeFirestore:
    def __init__(self):
        self.docs = {}
        self.writes = []
        self.fail_writes = set()
        self.fail_deletes = set()

    def collection(self, name):
        return FakeCollection(self, name)

    def transaction(self):
        return FakeTransaction()

    def get(self, collection, doc_id):
        return self.docs.get((collection, doc_id))

    def put(self, collection, doc_id, data):
        self.docs[(collection, doc_id)] = copy.deepcopy(data)


@pytest.fixture
def fake_db(monkeypatch):
    """Fake client; transactional bodies run inline against it."""
    monkeypatch.setattr(function_locks.firestore, "transactional", lambda fn: fn)
    return FakeFirestore()


def rss(items_xml: str) -> str:
    return (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<rss version="2.0" xmlns:content="http://purl.org/rss/1.0/modules/content/">'
        "<channel><title>ChiEAC on Medium</title><link>https://chieac.medium.com</link>"
        f"{items_xml}"
        "</channel></rss>"
    )


def rss_item(title, link, pub_date=None, categories=(), content=None, description=None) -> str:
    parts = [f"<title>{title}</title>", f"<link>{link}</link>"]
    if pub_date:
        parts.append(f"<pubDate>{pub_date}</pubDate>")
    for c in categories:
        parts.append(f"<category><![CDATA[{c}]]></category>")
    if content is not None:
        parts.append(f"<content:encoded><![CDATA[{content}]]></content:encoded>")
    if description is not None:
        parts.append(f"<description><![CDATA[{description}]]></description>")
    return "<item>" + "".join(parts) + "</item>"
