import pytest
from sqlalchemy.exc import OperationalError

from models import db
from models.account import Account
from models.credential_issuance import CredentialIssuance
from security import provisioner
from security.authenticator import authenticate
from security.errors import (
    AccountNotFound,
    AlreadyProvisioned,
    CredentialStoreUnavailable,
    WeakSecret,
)
from security.password import verify_password
from security.password_policy import validate_password
from security.provisioner import list_accounts_by_credential_status, provision, reset_credentials
from security.session import Session


@pytest.fixture
def fresh_student(make_account):
    return make_account(
        role="STUDENT",
        index_number="CS/ITC/21/0002",
        email="kofi.boateng@students.example.edu",
        name="Kofi Boateng",
        password=None,
    )


class TestProvision:
    def test_generated_secret_is_usable_once_delivered(self, app, admin, fresh_student):
        delivery = provision(fresh_student.id, issued_by=admin.id)

        assert validate_password(delivery.secret)[0]
        assert delivery.account_identifier == "CS/ITC/21/0002"
        assert delivery.account_email == "kofi.boateng@students.example.edu"
        assert delivery.kind == "PROVISION"

        stored = db.session.get(Account, fresh_student.id)
        assert verify_password(delivery.secret, stored.password_hash)
        assert isinstance(authenticate("CS/ITC/21/0002", delivery.secret), Session)

    def test_issuance_is_recorded_without_the_secret(self, app, admin, fresh_student):
        delivery = provision(fresh_student.id, issued_by=admin.id, notes="new intake")
        issuance = db.session.get(CredentialIssuance, delivery.issuance_id)

        assert issuance.account_id == fresh_student.id
        assert issuance.issued_by == admin.id
        assert issuance.secret_source == "GENERATED"
        assert issuance.notes == "new intake"
        assert delivery.secret not in repr(delivery)

    def test_explicit_secret_is_checked_against_policy(self, app, fresh_student):
        with pytest.raises(WeakSecret) as excinfo:
            provision(fresh_student.id, explicit_secret="password")

        assert excinfo.value.errors
        assert db.session.get(Account, fresh_student.id).password_hash is None
        assert CredentialIssuance.query.count() == 0

    def test_explicit_secret_accepted(self, app, fresh_student):
        delivery = provision(fresh_student.id, explicit_secret="Kofi-Strong-Pass-7")

        assert delivery.secret == "Kofi-Strong-Pass-7"
        assert db.session.get(CredentialIssuance, delivery.issuance_id).secret_source == "EXPLICIT"

    def test_second_provision_is_refused_and_changes_nothing(self, app, fresh_student):
        provision(fresh_student.id)
        before = db.session.get(Account, fresh_student.id).password_hash

        with pytest.raises(AlreadyProvisioned):
            provision(fresh_student.id)

        assert db.session.get(Account, fresh_student.id).password_hash == before
        assert CredentialIssuance.query.filter_by(account_id=fresh_student.id).count() == 1

    def test_lost_race_is_refused(self, app, fresh_student):
        """Someone else set a hash between our read and our write."""
        account = db.session.get(Account, fresh_student.id)
        db.session.execute(
            Account.__table__.update()
            .where(Account.id == account.id)
            .values(password_hash="$2b$04$someoneelsegotherefirst")
        )
        db.session.commit()

        with pytest.raises(AlreadyProvisioned):
            provisioner._write(account, "Kofi-Strong-Pass-7", "EXPLICIT", "PROVISION", None, None, only_if_unset=True)

        assert CredentialIssuance.query.count() == 0

    @pytest.mark.parametrize(
        "account_id", [987654, "not-a-number", None, True, 1.9, 10 ** 30, -1, 0, "²", " 1 2"]
    )
    def test_unknown_account(self, app, account_id):
        with pytest.raises(AccountNotFound):
            provision(account_id)

    def test_bool_and_float_do_not_alias_an_existing_id(self, app, fresh_student):
        assert fresh_student.id == 1

        for account_id in (True, 1.0, 1.5):
            with pytest.raises(AccountNotFound):
                reset_credentials(account_id)

        assert db.session.get(Account, fresh_student.id).password_hash is None

    def test_digit_string_id(self, app, fresh_student):
        delivery = provision(f" {fresh_student.id} ")
        assert delivery.account_identifier == "CS/ITC/21/0002"

    def test_failed_issuance_write_leaves_no_hash(self, app, fresh_student, monkeypatch):
        def broken(*args, **kwargs):
            raise OperationalError("INSERT INTO credential_issuances", {}, Exception("database is locked"))

        monkeypatch.setattr(provisioner, "CredentialIssuance", broken)

        with pytest.raises(CredentialStoreUnavailable):
            provision(fresh_student.id)

        db.session.expire_all()
        assert db.session.get(Account, fresh_student.id).password_hash is None


class TestReset:
    def test_reset_replaces_existing_secret(self, app, admin, student):
        old_hash = student.password_hash
        delivery = reset_credentials(student.id, issued_by=admin.id)

        stored = db.session.get(Account, student.id)
        assert stored.password_hash != old_hash
        assert verify_password(delivery.secret, stored.password_hash)
        assert delivery.kind == "RESET"

    def test_reset_also_works_for_unprovisioned(self, app, fresh_student):
        delivery = reset_credentials(fresh_student.id)
        assert db.session.get(Account, fresh_student.id).has_credentials
        assert delivery.account_identifier == "CS/ITC/21/0002"

    def test_staff_identifier_is_email(self, app, lecturer):
        assert reset_credentials(lecturer.id).account_identifier == "k.owusu@example.edu"


class TestListing:
    def test_filters_by_credential_status(self, app, student, fresh_student, lecturer):
        needs = list_accounts_by_credential_status("needs_credentials")
        has = list_accounts_by_credential_status("has_credentials")

        assert [a.id for a in needs] == [fresh_student.id]
        assert {a.id for a in has} == {student.id, lecturer.id}
        assert len(list_accounts_by_credential_status()) == 3

    def test_filters_by_role(self, app, student, lecturer):
        assert [a.id for a in list_accounts_by_credential_status(role="LECTURER")] == [lecturer.id]

    def test_unknown_status(self, app):
        with pytest.raises(ValueError):
            list_accounts_by_credential_status("maybe")
