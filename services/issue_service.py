"""
Issue Service - reporting, listing and community engagement

Covers issue CRUD plus the engagement operations:
- upvote toggle (conditional updates, safe under concurrent toggles)
- comment add / delete (delete is one fused lookup of issue, comment and author)
- authority updates of status and assignment
"""
import json
from typing import Any, Dict, Iterable, List, Mapping, Optional

from bson import ObjectId

from auth.session import Identity, require_role
from database.models import IssueModel, UserModel, as_object_id, utcnow
from database.schemas import (
    CELL_FIELD,
    DEFAULT_ISSUE_SEVERITY,
    DEFAULT_ISSUE_STATUS,
    ISSUE_CATEGORY_ENUM,
    ISSUE_SEVERITY_ENUM,
    ISSUE_STATUS_ENUM,
    PRIVILEGED_ROLES,
    TOKEN_FIELD,
)
from logging_setup import get_logger
from search.geo import grid_cell, normalize_coordinates
from search.tokens import issue_tokens
from services.errors import NotFoundError, StorageError, ValidationError
from services.query_builder import build_issue_query
from services.validation import (
    is_number,
    one_of,
    optional_text,
    required_text,
    parse_datetime,
    string_list,
    user_ref,
)

log = get_logger("issues")

DEFAULT_REPORT_POINTS = 10


def _validate_location(raw: Any) -> Dict:
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            raise ValidationError("Invalid location format") from None
    if not isinstance(raw, dict):
        raise ValidationError("location is required")
    try:
        coordinates = normalize_coordinates(raw.get("coordinates"))
    except ValueError as e:
        raise ValidationError(str(e)) from None

    pincode = raw.get("pincode")
    if is_number(pincode):
        pincode = str(pincode)

    location = {
        "coordinates": coordinates,
        "state": required_text(raw.get("state"), "location.state"),
        "district": required_text(raw.get("district"), "location.district"),
        "pincode": required_text(pincode, "location.pincode"),
        CELL_FIELD: grid_cell(*coordinates),
    }
    address = optional_text(raw.get("address"), "location.address")
    if address:
        location["address"] = address
    return location


def _validate_ai_analysis(raw: Any) -> Optional[Dict]:
    if raw is None:
        return None
    if not isinstance(raw, dict):
        raise ValidationError("aiAnalysis must be an object")
    analysis = {}
    for key in ("categoryConfidence", "severityScore"):
        if raw.get(key) is not None:
            if not is_number(raw[key]):
                raise ValidationError(f"aiAnalysis.{key} must be a number")
            analysis[key] = float(raw[key])
    analysis["automatedTags"] = string_list(raw.get("automatedTags"), "aiAnalysis.automatedTags")
    return analysis


def validate_new_issue(data: Mapping[str, Any]) -> Dict:
    """Checked, normalised fields of a new issue (without images and reporter)"""
    if not isinstance(data, Mapping):
        raise ValidationError("Issue data must be an object")
    fields = {
        "title": required_text(data.get("title"), "title"),
        "description": required_text(data.get("description"), "description"),
        "category": one_of(data.get("category"), ISSUE_CATEGORY_ENUM, "category"),
        "severity": one_of(data.get("severity") or DEFAULT_ISSUE_SEVERITY, ISSUE_SEVERITY_ENUM, "severity"),
        "location": _validate_location(data.get("location")),
    }
    analysis = _validate_ai_analysis(data.get("aiAnalysis"))
    if analysis is not None:
        fields["aiAnalysis"] = analysis
    return fields


class IssueService:
    """Issue operations over the issue store and its collaborators"""

    def __init__(self, issues: IssueModel, users: UserModel, image_store=None, points_ledger=None,
                 report_points: int = DEFAULT_REPORT_POINTS, max_page_size: Optional[int] = None):
        self.issues = issues
        self.users = users
        self.image_store = image_store
        self.points_ledger = points_ledger if points_ledger is not None else users
        self.report_points = report_points
        self.max_page_size = max_page_size

    # ---- helpers ----

    @staticmethod
    def _issue_id(issue_id: Any) -> ObjectId:
        oid = as_object_id(issue_id)
        if oid is None:
            raise NotFoundError("Issue not found")
        return oid

    def _discard_images(self, urls: List[str]) -> None:
        discard = getattr(self.image_store, "discard", None)
        if discard is None:
            return
        for url in urls:
            try:
                discard(url)
            except Exception as e:
                log.warning(f"Could not discard uploaded image {url[:60]}: {e}")

    def _upload_images(self, images: Iterable[Any]) -> List[str]:
        """All images or none: a failed upload discards the ones already stored"""
        payloads = list(images or ())
        if not payloads:
            return []
        if self.image_store is None:
            raise StorageError("Image storage is not configured")
        urls: List[str] = []
        for payload in payloads:
            try:
                urls.append(self.image_store.upload(payload))
            except Exception as e:
                log.warning(f"Image {len(urls) + 1}/{len(payloads)} failed, discarding {len(urls)} uploaded")
                self._discard_images(urls)
                if isinstance(e, StorageError):
                    raise
                raise StorageError(f"Image upload failed: {e}") from e
        return urls

    @staticmethod
    def _new_comment(author: ObjectId, text: str, created_at=None) -> Dict:
        return {
            "_id": ObjectId(),
            "userId": author,
            "text": text,
            "createdAt": parse_datetime(created_at, "createdAt") if created_at else utcnow(),
        }

    # ---- CRUD ----

    def create_issue(self, user_id: Any, data: Mapping[str, Any], images: Iterable[Any] = ()) -> Dict:
        """
        Report a new issue.

        Images are uploaded before the record is built; if any upload fails
        nothing is stored. The reporter earns ``report_points`` once the issue
        exists; if the award fails the issue is removed again.
        """
        reporter = user_ref(user_id, "reporter id")
        fields = validate_new_issue(data)
        urls = self._upload_images(images)

        now = utcnow()
        issue = {
            **fields,
            "status": DEFAULT_ISSUE_STATUS,
            "images": urls,
            "reportedBy": reporter,
            "comments": [],
            "upvotes": [],
            "createdAt": now,
            "updatedAt": now,
        }
        issue[TOKEN_FIELD] = issue_tokens(issue)

        try:
            issue = self.issues.insert(issue)
        except Exception:
            self._discard_images(urls)
            raise

        try:
            self.points_ledger.add_points(reporter, self.report_points)
        except Exception:
            log.error(f"Points award failed, rolling back issue {issue['_id']}")
            self.issues.delete(issue["_id"])
            self._discard_images(urls)
            raise

        log.info(f"Issue {issue['_id']} reported by {reporter} ({fields['category']}, {len(urls)} images)")
        return self.issues.populate_one(issue)

    def get_issue(self, issue_id: Any) -> Dict:
        doc = self.issues.find_by_id(self._issue_id(issue_id))
        if doc is None:
            raise NotFoundError("Issue not found")
        return self.issues.populate_one(doc)

    def update_issue(self, issue_id: Any, data: Mapping[str, Any], actor: Optional[Identity] = None) -> Dict:
        """
        Apply status, assignedTo and comment in a single write.

        With an actor, status and assignment changes need an admin or authority
        role, and ``comment`` is appended under the actor's id. Without an actor
        the caller is trusted and a comment has no author to be filed under.
        """
        oid = self._issue_id(issue_id)
        data = data or {}

        set_fields: Dict[str, Any] = {}
        if data.get("status") is not None:
            set_fields["status"] = one_of(data["status"], ISSUE_STATUS_ENUM, "status")
        if data.get("assignedTo") is not None:
            set_fields["assignedTo"] = user_ref(data["assignedTo"], "assignedTo")

        comment = data.get("comment")
        if comment is not None:
            comment = required_text(comment, "comment")

        if actor is not None and set_fields:
            require_role(actor, *PRIVILEGED_ROLES)

        update: Dict[str, Dict] = {}
        if set_fields:
            update["$set"] = set_fields
        if comment and actor is not None:
            update["$push"] = {"comments": self._new_comment(user_ref(actor.user_id), comment)}
        elif comment:
            log.debug(f"Comment on issue {oid} ignored: no caller identity")

        if not update:
            return self.get_issue(oid)

        update.setdefault("$set", {})["updatedAt"] = utcnow()
        doc = self.issues.update_fields(oid, update)
        if doc is None:
            raise NotFoundError("Issue not found")
        log.info(f"Issue {oid} updated: {sorted(set_fields)}{' +comment' if '$push' in update else ''}")
        return self.issues.populate_one(doc)

    def delete_issue(self, issue_id: Any) -> None:
        oid = self._issue_id(issue_id)
        if not self.issues.delete(oid):
            raise NotFoundError("Issue not found")
        log.info(f"Issue {oid} deleted")

    def list_issues(self, filters: Optional[Mapping[str, Any]] = None,
                    options: Optional[Mapping[str, Any]] = None) -> Dict:
        """Filtered, sorted page of issues plus the total match count"""
        plan = build_issue_query(filters, options, self.max_page_size)
        log.debug(f"Issue query {plan.predicate} sort={plan.sort} skip={plan.skip} limit={plan.limit}")
        items = self.issues.find_page(plan.predicate, plan.sort, plan.skip, plan.limit)
        total = self.issues.count(plan.predicate)
        return {"items": self.issues.populate(items), "totalCount": total}

    # ---- engagement ----

    def upvote_toggle(self, issue_id: Any, user_id: Any) -> Dict:
        oid = self._issue_id(issue_id)
        voter = user_ref(user_id)
        doc, added = self.issues.toggle_upvote(oid, voter)
        if doc is None:
            raise NotFoundError("Issue not found")
        log.debug(f"Upvote {'added' if added else 'removed'} on {oid} by {voter}")
        return self.issues.populate_one(doc)

    def add_comment(self, issue_id: Any, comment: Mapping[str, Any]) -> Dict:
        """Append a comment; returns the issue with comment authors resolved"""
        comment = comment or {}
        text = comment.get("text")
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("comment text required")
        author = user_ref(comment.get("userId"))
        oid = self._issue_id(issue_id)

        doc = self.issues.push_comment(oid, self._new_comment(author, text.strip(), comment.get("createdAt")))
        if doc is None:
            raise NotFoundError("Issue not found")
        log.debug(f"Comment added on {oid} by {author}")
        return self.issues.populate_one(doc)

    def delete_comment(self, issue_id: Any, comment_id: Any, user_id: Any) -> Dict:
        """
        Remove a comment written by ``user_id``.

        A wrong issue, an unknown comment and a comment by someone else all
        fail the same way, with NotFoundError.
        """
        ids = [as_object_id(v) for v in (issue_id, comment_id, user_id)]
        if any(v is None for v in ids):
            raise NotFoundError("Comment not found or not authorized")
        oid, cid, author = ids

        doc = self.issues.pull_comment(oid, cid, author)
        if doc is None:
            raise NotFoundError("Comment not found or not authorized")
        log.debug(f"Comment {cid} removed from {oid}")
        return self.issues.populate_one(doc)
