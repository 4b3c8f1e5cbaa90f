"""
Unit tests for EmailVerificationService domain logic.

Tests domain logic with mocked ports to verify:
- Email normalization
- Verification code generation
- Code delivery after a successful claim
- Verify flow outcomes
"""

import re
import uuid
from unittest.mock import Mock

import pytest

from src.adapters.repository.memory import InMemoryEmailStore
from src.domain.context import RequestContext
from src.domain.email_registry import EmailRegistry
from src.domain.exceptions import ErrorKind, RegistryError
from src.domain.ports import VerifyResult
from src.domain.verification import EmailVerificationService, normalize_email


@pytest.fixture
def sender() -> Mock:
    return Mock()


@pytest.fixture
def service(registry: EmailRegistry, sender: Mock) -> EmailVerificationService:
    return EmailVerificationService(registry=registry, email_sender=sender)


class TestEmailNormalization:
    """Tests for email normalization."""

    def test_add_email_normalizes_address(self, ctx: RequestContext) -> None:
        """Address is stripped and lowercased before reaching the registry."""
        registry = Mock()
        registry.get_code.return_value = "123456"
        service = EmailVerificationService(registry=registry, email_sender=Mock())

        service.add_email(ctx, uuid.uuid4(), "  User@Example.COM  ")

        assert registry.add.call_args[0][2] == "user@example.com"
        registry.get_code.assert_called_once_with(ctx, "user@example.com")

    def test_verify_email_normalizes_address(self, ctx: RequestContext) -> None:
        registry = Mock()
        registry.lookup_code.return_value = None
        service = EmailVerificationService(registry=registry, email_sender=Mock())

        service.verify_email(ctx, " A@X.COM ", "111111")

        registry.lookup_code.assert_called_once_with(ctx, "a@x.com", "111111")

    def test_normalize_email_strips_and_lowercases(self) -> None:
        """The HTTP layer echoes addresses through the same function."""
        assert normalize_email("  User@Example.COM\t") == "user@example.com"


class TestVerificationCodeGeneration:
    """Tests for verification code generation."""

    def test_default_code_is_6_digits(
        self, service: EmailVerificationService, sender: Mock, ctx: RequestContext, alice: uuid.UUID
    ) -> None:
        service.add_email(ctx, alice, "a@x.com")

        code = sender.send_verification_code.call_args[0][1]
        assert re.match(r"^\d{6}$", code)

    def test_code_length_configurable(
        self, registry: EmailRegistry, sender: Mock, ctx: RequestContext, alice: uuid.UUID
    ) -> None:
        service = EmailVerificationService(registry=registry, email_sender=sender, code_length=8)
        service.add_email(ctx, alice, "a@x.com")

        code = sender.send_verification_code.call_args[0][1]
        assert len(code) == 8
        assert code.isdigit()

    def test_verification_codes_vary(self, ctx: RequestContext) -> None:
        """Verification codes are not always the same (randomness check)."""
        registry = Mock()
        service = EmailVerificationService(registry=registry, email_sender=Mock())

        codes = set()
        for _ in range(10):
            service.add_email(ctx, uuid.uuid4(), "a@x.com")
            codes.add(registry.add.call_args[0][3])

        assert len(codes) >= 2


class TestAddEmail:
    """Tests for the add flow orchestration."""

    def test_sends_stored_code(
        self,
        service: EmailVerificationService,
        store: InMemoryEmailStore,
        sender: Mock,
        ctx: RequestContext,
        alice: uuid.UUID,
    ) -> None:
        """The code handed to the sender is the one stored on the record."""
        record = service.add_email(ctx, alice, "a@x.com")

        sender.send_verification_code.assert_called_once_with(
            "a@x.com", store.get_email(ctx, "a@x.com").verification_code
        )
        assert record.account_id == alice

    def test_readd_sends_fresh_code(
        self, service: EmailVerificationService, sender: Mock, ctx: RequestContext, alice: uuid.UUID
    ) -> None:
        service.add_email(ctx, alice, "a@x.com")
        service.add_email(ctx, alice, "a@x.com")

        assert sender.send_verification_code.call_count == 2

    def test_conflict_sends_nothing(
        self,
        service: EmailVerificationService,
        sender: Mock,
        ctx: RequestContext,
        alice: uuid.UUID,
        bob: uuid.UUID,
    ) -> None:
        """No code is delivered when the claim fails."""
        service.add_email(ctx, alice, "a@x.com")
        sender.reset_mock()

        with pytest.raises(RegistryError) as exc_info:
            service.add_email(ctx, bob, "a@x.com")

        assert exc_info.value.kind == ErrorKind.ALREADY_CLAIMED
        sender.send_verification_code.assert_not_called()


class TestVerifyEmail:
    """Tests for the verify flow."""

    def test_correct_code_verifies(
        self,
        service: EmailVerificationService,
        store: InMemoryEmailStore,
        sender: Mock,
        ctx: RequestContext,
        alice: uuid.UUID,
    ) -> None:
        service.add_email(ctx, alice, "a@x.com")
        code = sender.send_verification_code.call_args[0][1]

        result = service.verify_email(ctx, "a@x.com", code)

        assert result == VerifyResult.SUCCESS
        assert store.get_email(ctx, "a@x.com").verified is True

    def test_wrong_code_is_invalid(
        self,
        service: EmailVerificationService,
        store: InMemoryEmailStore,
        sender: Mock,
        ctx: RequestContext,
        alice: uuid.UUID,
    ) -> None:
        service.add_email(ctx, alice, "a@x.com")
        code = sender.send_verification_code.call_args[0][1]
        wrong = "0" * len(code) if code != "0" * len(code) else "1" * len(code)

        result = service.verify_email(ctx, "a@x.com", wrong)

        assert result == VerifyResult.INVALID_CODE
        assert store.get_email(ctx, "a@x.com").verified is False

    def test_superseded_code_is_invalid(
        self, ctx: RequestContext, alice: uuid.UUID, registry: EmailRegistry
    ) -> None:
        """Only the latest code verifies after a re-add."""
        registry.add(ctx, alice, "a@x.com", "111111")
        registry.add(ctx, alice, "a@x.com", "222222")
        service = EmailVerificationService(registry=registry, email_sender=Mock())

        assert service.verify_email(ctx, "a@x.com", "111111") == VerifyResult.INVALID_CODE
        assert service.verify_email(ctx, "a@x.com", "222222") == VerifyResult.SUCCESS


class TestProvisioning:
    def test_provisioned_address_has_no_owner(
        self, service: EmailVerificationService, sender: Mock, ctx: RequestContext
    ) -> None:
        """Provisioning stores a seed code and delivers nothing."""
        record = service.provision_email(ctx, " News@Example.com ")

        assert record.address == "news@example.com"
        assert record.account_id is None
        assert record.verification_code.isdigit()
        sender.send_verification_code.assert_not_called()

    def test_account_for_email_after_claim(
        self, service: EmailVerificationService, ctx: RequestContext, alice: uuid.UUID
    ) -> None:
        service.provision_email(ctx, "news@example.com")
        assert service.account_for_email(ctx, "news@example.com") is None

        service.add_email(ctx, alice, "NEWS@example.com")

        account = service.account_for_email(ctx, "news@example.com")
        assert account is not None
        assert account.id == alice
