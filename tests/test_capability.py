from sitenotify.schemas.identity import Platform
from sitenotify.services.capability import PermissionGate
from sitenotify.services.push_provider import ExecutionEnvironment, PermissionStatus

from conftest import FakePushProvider


class ExplodingProvider(FakePushProvider):
    async def get_permission_status(self):
        raise RuntimeError("native module crashed")


def test_store_client_on_android_is_unsupported():
    gate = PermissionGate(
        FakePushProvider(platform=Platform.ANDROID, execution_environment=ExecutionEnvironment.STORE_CLIENT)
    )
    result = gate.check_capability()
    assert result.supported is False
    assert "store client" in result.reason


def test_store_client_on_ios_is_supported():
    gate = PermissionGate(
        FakePushProvider(platform=Platform.IOS, execution_environment=ExecutionEnvironment.STORE_CLIENT)
    )
    assert gate.check_capability().supported is True


def test_simulator_is_unsupported():
    result = PermissionGate(FakePushProvider(is_physical_device=False)).check_capability()
    assert result.supported is False
    assert "physical device" in result.reason


def test_missing_notification_module_is_unsupported():
    result = PermissionGate(FakePushProvider(available=False)).check_capability()
    assert result.supported is False
    assert result.reason


async def test_granted_permission_does_not_prompt(provider):
    gate = PermissionGate(provider)
    result = await gate.request_permission()
    assert result.granted is True
    assert provider.prompts == 0


async def test_undetermined_permission_prompts_once():
    provider = FakePushProvider(status=PermissionStatus.UNDETERMINED, prompt_result=PermissionStatus.GRANTED)
    gate = PermissionGate(provider)

    result = await gate.request_permission()

    assert result.granted is True
    assert provider.prompts == 1


async def test_permanent_denial_never_prompts():
    provider = FakePushProvider(status=PermissionStatus.DENIED, can_ask_again=False)
    gate = PermissionGate(provider)

    result = await gate.request_permission()

    assert result.granted is False
    assert result.status == PermissionStatus.DENIED
    assert provider.prompts == 0


async def test_no_prompt_when_caller_opts_out():
    provider = FakePushProvider(status=PermissionStatus.UNDETERMINED)
    result = await PermissionGate(provider).request_permission(prompt_user=False)
    assert result.granted is False
    assert provider.prompts == 0


async def test_denial_is_cached_until_foreground():
    provider = FakePushProvider(status=PermissionStatus.UNDETERMINED, prompt_result=PermissionStatus.DENIED)
    gate = PermissionGate(provider)

    assert (await gate.request_permission()).granted is False
    assert (await gate.request_permission()).granted is False
    assert provider.prompts == 1

    # User enabled notifications in system settings
    provider.status = PermissionStatus.GRANTED
    assert (await gate.get_permission_status()).granted is False
    gate.on_foreground()
    assert (await gate.get_permission_status()).granted is True


async def test_unsupported_environment_reports_unsupported_status():
    gate = PermissionGate(FakePushProvider(is_physical_device=False))
    result = await gate.request_permission()
    assert result.status == PermissionStatus.UNSUPPORTED
    assert result.granted is False


async def test_provider_error_is_undetermined():
    gate = PermissionGate(ExplodingProvider())
    result = await gate.get_permission_status()
    assert result.status == PermissionStatus.UNDETERMINED
    assert result.granted is False


class BrokenModuleProvider(FakePushProvider):
    def notifications_available(self):
        raise RuntimeError("native module missing")


def test_notification_module_error_is_unsupported():
    result = PermissionGate(BrokenModuleProvider()).check_capability()
    assert result.supported is False
    assert "not available" in result.reason
