import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest
from jwt.utils import base64url_encode

from security.errors import ImmutableClaim, InvalidClaim, InvalidSession
from security.session import decode_session, issue, refresh


class TestIssue:
    def test_student_claims_carry_index_number(self, app, student):
        session = issue(student)
        claims = decode_session(session.token)

        assert claims["sub"] == str(student.id)
        assert claims["role"] == "STUDENT"
        assert claims["indexNumber"] == "CS/ITC/21/0001"
        assert claims["name"] == "Ama Mensah"
        assert "avatarRef" not in claims

    def test_staff_claims_have_no_index_number(self, app, lecturer):
        claims = decode_session(issue(lecturer).token)

        assert claims["role"] == "LECTURER"
        assert "indexNumber" not in claims

    def test_lifetime_is_seven_days(self, app, student):
        now = datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc)
        session = issue(student, now)

        assert session.claims["exp"] - session.claims["iat"] == 7 * 24 * 60 * 60
        assert session.expires_at == now + timedelta(days=7)

    def test_naive_now_is_treated_as_utc(self, app, student):
        naive = issue(student, datetime(2026, 3, 2, 8, 0))
        aware = issue(student, datetime(2026, 3, 2, 8, 0, tzinfo=timezone.utc))

        assert naive.claims["iat"] == aware.claims["iat"]

    def test_avatar_included_when_set(self, app, make_account):
        account = make_account(role="ADMIN", email="it@example.edu", avatar_ref="avatars/it.png")
        assert issue(account).claims["avatarRef"] == "avatars/it.png"


class TestDecode:
    def test_tampered_token_rejected(self, app, student):
        session = issue(student)
        header, _, signature = session.token.split(".")
        escalated = dict(session.claims, role="ADMIN")
        payload = base64url_encode(json.dumps(escalated).encode("utf-8")).decode("ascii")
        forged = ".".join([header, payload, signature])

        with pytest.raises(InvalidSession):
            decode_session(forged)

    def test_other_key_rejected(self, app, student):
        claims = dict(issue(student).claims)
        token = jwt.encode(claims, "some-other-signing-key-with-enough-length!", algorithm="HS256")

        with pytest.raises(InvalidSession):
            decode_session(token)

    def test_expired_token_rejected(self, app, student):
        stale = issue(student, datetime.now(timezone.utc) - timedelta(days=8))

        with pytest.raises(InvalidSession):
            decode_session(stale.token)

    def test_missing_token(self, app):
        with pytest.raises(InvalidSession):
            decode_session("")

    def test_unknown_role_rejected(self, app):
        now = int(datetime.now(timezone.utc).timestamp())
        token = jwt.encode(
            {"sub": "1", "role": "SUPERUSER", "name": "x", "iat": now, "exp": now + 60},
            app.config["SESSION_SIGNING_KEY"],
            algorithm="HS256",
        )

        with pytest.raises(InvalidSession):
            decode_session(token)


class TestRefresh:
    def test_display_claims_update_and_identity_holds(self, app, student):
        original = issue(student)
        refreshed = refresh(original.token, {"name": "Ama K. Mensah", "avatarRef": "avatars/ama.png"})
        claims = decode_session(refreshed.token)

        assert claims["name"] == "Ama K. Mensah"
        assert claims["avatarRef"] == "avatars/ama.png"
        for preserved in ("sub", "role", "indexNumber", "iat", "exp"):
            assert claims[preserved] == original.claims[preserved]

    def test_avatar_can_be_cleared(self, app, make_account):
        account = make_account(role="LECTURER", email="lec@example.edu", avatar_ref="avatars/old.png")
        refreshed = refresh(issue(account).token, {"avatarRef": None})

        assert "avatarRef" not in decode_session(refreshed.token)

    @pytest.mark.parametrize(
        "patch",
        [{"role": "ADMIN"}, {"sub": "999"}, {"indexNumber": "CS/ITC/21/0002"}, {"exp": 4102444800}],
    )
    def test_identity_claims_are_immutable(self, app, student, patch):
        token = issue(student).token

        with pytest.raises(ImmutableClaim) as excinfo:
            refresh(token, patch)
        assert excinfo.value.claims == sorted(patch)

    def test_mixed_patch_rejected_whole(self, app, student):
        with pytest.raises(ImmutableClaim):
            refresh(issue(student).token, {"name": "New Name", "role": "ADMIN"})

    def test_blank_name_rejected(self, app, student):
        with pytest.raises(InvalidClaim):
            refresh(issue(student).token, {"name": "   "})

    def test_invalid_token_cannot_be_refreshed(self, app):
        with pytest.raises(InvalidSession):
            refresh("not.a.token", {"name": "x"})
