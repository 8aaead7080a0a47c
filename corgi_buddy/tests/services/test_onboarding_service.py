from corgi_buddy.models.buddy_pair import BuddyPair
from corgi_buddy.models.enums import BuddyPairStatus
from corgi_buddy.models.user import User
from corgi_buddy.services.buddy_service import NO_BUDDY, BuddyStatus
from corgi_buddy.services.onboarding_service import OnboardingStep, derive_onboarding_state
from corgi_buddy.tests.factories import make_buddies, make_user, wallet


def test_without_wallet_starts_at_welcome():
    state = derive_onboarding_state(User(id=1, first_name="a"), BuddyStatus(status=NO_BUDDY))
    assert state.current_step == OnboardingStep.welcome
    assert state.wallet_connected is False


def test_wallet_without_active_buddy_is_buddy_step():
    user = User(id=1, first_name="a", ton_wallet_address=wallet(1))
    pending = BuddyStatus(status=BuddyPairStatus.pending.value, pair=BuddyPair())
    state = derive_onboarding_state(user, pending)
    assert state.current_step == OnboardingStep.buddy
    assert state.buddy_confirmed is False


def test_active_buddy_without_wallet_is_still_welcome():
    user = User(id=1, first_name="a")
    state = derive_onboarding_state(user, BuddyStatus(status=BuddyPairStatus.active.value))
    assert state.current_step == OnboardingStep.welcome
    assert state.buddy_confirmed is True


def test_status_completes_with_wallet_and_buddy(db, container):
    make_user(db, 1)
    make_user(db, 2)
    make_buddies(db, 1, 2)

    user, buddy_status, state = container.onboarding.status(db, user_id=1)

    assert user.id == 1
    assert buddy_status.buddy.id == 2
    assert state.current_step == OnboardingStep.complete
