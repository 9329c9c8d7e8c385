"""
MongoDB Models and Helper Functions

Models own every stored document. Callers pass ids, never document references;
each call re-reads by id. References between documents (reporter, assignee,
comment author) are plain ObjectId fields resolved by an explicit lookup in
``IssueModel.populate``.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument

from logging_setup import get_logger
from services.errors import ConflictError
from .schemas import CELL_FIELD, TOKEN_FIELD

log = get_logger("models")

REPORTER_FIELDS = {"name": 1, "profilePicture": 1, "points": 1}
USER_CARD_FIELDS = {"name": 1, "profilePicture": 1}
CONTRIBUTOR_FIELDS = {"name": 1, "profilePicture": 1, "points": 1, "badges": 1}
MAP_FIELDS = {"title": 1, "category": 1, "status": 1, "severity": 1, "location.coordinates": 1}

UPVOTE_ATTEMPTS = 5


def utcnow() -> datetime:
    """Naive UTC timestamp, the form pymongo hands back for stored dates"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_object_id(value: Any) -> Optional[ObjectId]:
    """ObjectId for a valid id value, None otherwise"""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


def public_document(doc: Optional[dict]) -> Optional[dict]:
    """Copy of a stored document without the index-only fields"""
    if doc is None:
        return None
    doc = dict(doc)
    doc.pop(TOKEN_FIELD, None)
    if isinstance(doc.get("location"), dict):
        location = dict(doc["location"])
        location.pop(CELL_FIELD, None)
        doc["location"] = location
    return doc


class _CollectionModel:
    """Operations shared by every collection-backed model"""

    def __init__(self, collection):
        self.collection = collection

    def insert(self, document: Dict) -> Dict:
        result = self.collection.insert_one(document)
        document["_id"] = result.inserted_id
        return document

    def find_by_id(self, doc_id: ObjectId, projection: Optional[Dict] = None):
        return self.collection.find_one({"_id": doc_id}, projection)

    def find_page(self, predicate: Dict, sort, skip: int = 0, limit: int = 0) -> List[Dict]:
        cursor = self.collection.find(predicate)
        if sort:
            cursor = cursor.sort(sort)
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return list(cursor)

    def count(self, predicate: Dict) -> int:
        return self.collection.count_documents(predicate)

    def update_fields(self, doc_id: ObjectId, update: Dict) -> Optional[Dict]:
        """Apply one update document atomically and return the new state (None if missing)"""
        return self.collection.find_one_and_update(
            {"_id": doc_id}, update, return_document=ReturnDocument.AFTER
        )

    def delete(self, doc_id: ObjectId) -> bool:
        return self.collection.delete_one({"_id": doc_id}).deleted_count == 1


class UserModel(_CollectionModel):
    """Users, their points ledger and the lookups used to resolve references"""

    def create_user(self, data: Dict) -> Dict:
        now = utcnow()
        user_data = {
            "name": data.get("name"),
            "email": data.get("email"),
            "password": data.get("password"),  # Should be hashed before calling
            "role": data.get("role", "user"),
            "profilePicture": data.get("profilePicture"),
            "points": 0,
            "badges": [],
            "level": 1,
            "verified": False,
            "location": data.get("location"),
            "createdAt": now,
            "updatedAt": now,
        }
        return self.insert(user_data)

    def find_by_email(self, email: str, include_password: bool = False):
        projection = None if include_password else {"password": 0}
        return self.collection.find_one({"email": email}, projection)

    def find_by_id(self, user_id: ObjectId, projection: Optional[Dict] = None, include_password: bool = False):
        if projection is None and not include_password:
            projection = {"password": 0}
        return self.collection.find_one({"_id": user_id}, projection)

    def update_profile(self, user_id: ObjectId, fields: Dict) -> Optional[Dict]:
        return self.collection.find_one_and_update(
            {"_id": user_id},
            {"$set": {**fields, "updatedAt": utcnow()}},
            projection={"password": 0},
            return_document=ReturnDocument.AFTER,
        )

    def set_password(self, user_id: ObjectId, password_hash: str) -> bool:
        res = self.collection.update_one(
            {"_id": user_id},
            {"$set": {"password": password_hash, "updatedAt": utcnow()}},
        )
        return res.matched_count == 1

    def add_points(self, user_id: Any, points: int) -> bool:
        """Points ledger: atomic increment. Returns False when the user is unknown."""
        res = self.collection.update_one({"_id": user_id}, {"$inc": {"points": points}})
        if res.matched_count == 0:
            log.warning(f"Points award of {points} skipped: user {user_id} not found")
            return False
        return True

    def lookup(self, user_ids: Iterable[Any], fields: Dict) -> Dict[Any, Dict]:
        """Explicit join: fetch the given users once, keyed by _id"""
        ids = [uid for uid in set(user_ids) if uid is not None]
        if not ids:
            return {}
        return {u["_id"]: u for u in self.collection.find({"_id": {"$in": ids}}, fields)}

    def top_by_points(self, limit: int = 5) -> List[Dict]:
        """Highest point totals; equal points fall back to name, then _id"""
        cursor = (
            self.collection.find({}, CONTRIBUTOR_FIELDS)
            .sort([("points", -1), ("name", 1), ("_id", 1)])
            .limit(limit)
        )
        return list(cursor)


class IssueModel(_CollectionModel):
    """Issues with their embedded comments and upvote set"""

    def __init__(self, collection, users: UserModel):
        super().__init__(collection)
        self.users = users

    def toggle_upvote(self, issue_id: ObjectId, user_ref: Any) -> Tuple[Optional[Dict], bool]:
        """
        Flip ``user_ref`` in the upvote set with conditional updates only.

        The pull only applies while the user is a member and the add only while
        they are not, so concurrent toggles by different users never overwrite
        each other and ``$addToSet`` keeps membership unique. Returns
        (document, added); the document is None when the issue does not exist.
        """
        for _ in range(UPVOTE_ATTEMPTS):
            doc = self.collection.find_one_and_update(
                {"_id": issue_id, "upvotes": user_ref},
                {"$pull": {"upvotes": user_ref}, "$set": {"updatedAt": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is not None:
                return doc, False
            doc = self.collection.find_one_and_update(
                {"_id": issue_id, "upvotes": {"$ne": user_ref}},
                {"$addToSet": {"upvotes": user_ref}, "$set": {"updatedAt": utcnow()}},
                return_document=ReturnDocument.AFTER,
            )
            if doc is not None:
                return doc, True
            if self.collection.find_one({"_id": issue_id}, {"_id": 1}) is None:
                return None, False
            # membership flipped between the two attempts; go again
        raise ConflictError("Upvote state kept changing, try again")

    def push_comment(self, issue_id: ObjectId, comment: Dict) -> Optional[Dict]:
        return self.update_fields(
            issue_id,
            {"$push": {"comments": comment}, "$set": {"updatedAt": utcnow()}},
        )

    def pull_comment(self, issue_id: ObjectId, comment_id: ObjectId, user_ref: Any) -> Optional[Dict]:
        """
        Remove a comment only if this issue holds it and ``user_ref`` wrote it.

        Existence and authorship are one predicate, so nothing can change the
        comment between the check and the removal.
        """
        return self.collection.find_one_and_update(
            {
                "_id": issue_id,
                "comments": {"$elemMatch": {"_id": comment_id, "userId": user_ref}},
            },
            {
                "$pull": {"comments": {"_id": comment_id, "userId": user_ref}},
                "$set": {"updatedAt": utcnow()},
            },
            return_document=ReturnDocument.AFTER,
        )

    def group_counts(self, field: str) -> List[Tuple[Any, int]]:
        """(value, count) per distinct value of ``field``, read in one aggregation"""
        rows = self.collection.aggregate([
            {"$group": {"_id": f"${field}", "count": {"$sum": 1}}},
        ])
        return [(row["_id"], row["count"]) for row in rows]

    def map_points(self, predicate: Dict) -> List[Dict]:
        return list(self.collection.find(predicate, MAP_FIELDS))

    def populate(self, docs: List[Dict]) -> List[Dict]:
        """
        Resolve reporter, assignee and comment authors with one users lookup.

        Users that no longer exist resolve to None.
        """
        wanted = set()
        for doc in docs:
            wanted.add(doc.get("reportedBy"))
            wanted.add(doc.get("assignedTo"))
            wanted.update(c.get("userId") for c in doc.get("comments") or [])
        users = self.users.lookup(wanted, REPORTER_FIELDS)

        def card(user_id, with_points=False):
            user = users.get(user_id)
            if user is None:
                return None
            result = {"_id": user["_id"], "name": user.get("name"), "profilePicture": user.get("profilePicture")}
            if with_points:
                result["points"] = user.get("points", 0)
            return result

        populated = []
        for doc in docs:
            doc = public_document(doc)
            if not doc.get("location"):
                doc["location"] = {"coordinates": [0.0, 0.0], "state": "", "district": "", "pincode": ""}
            doc.setdefault("images", [])
            doc.setdefault("upvotes", [])
            doc["reporter"] = card(doc.get("reportedBy"), with_points=True)
            doc["assignee"] = card(doc.get("assignedTo")) if doc.get("assignedTo") else None
            doc["comments"] = [
                {**comment, "user": card(comment.get("userId"))}
                for comment in doc.get("comments") or []
            ]
            populated.append(doc)
        return populated

    def populate_one(self, doc: Optional[Dict]) -> Optional[Dict]:
        if doc is None:
            return None
        return self.populate([doc])[0]


class CivicUpdateModel(_CollectionModel):
    """Civic updates (events, hazards, projects, alerts, utility notices)"""

    def find_by_area(self, area_filter: Dict) -> List[Dict]:
        """Updates with one affected area matching every key of ``area_filter``, newest start first"""
        cursor = self.collection.find(
            {"affectedAreas": {"$elemMatch": area_filter}}
        ).sort([("startDate", -1), ("_id", -1)])
        return [public_document(doc) for doc in cursor]

    def recent(self, limit: int = 5) -> List[Dict]:
        cursor = self.collection.find({}).sort([("createdAt", -1), ("_id", -1)]).limit(limit)
        return [public_document(doc) for doc in cursor]
