from smart_account.exceptions import ModuleNotConfiguredError
from smart_account.modules.base_validation_module import BaseValidationModule


class ModuleRegistry:
    """The default module fixes the account's deployment identity and can
    not change. The active module signs and can be swapped at any time.

    Swapping while an operation of the same account is being built or
    signed is not supported.
    """
    _default_module: BaseValidationModule | None
    _active_module: BaseValidationModule | None

    def __init__(
        self,
        default_module: BaseValidationModule | None = None,
        active_module: BaseValidationModule | None = None,
    ):
        self._default_module = default_module
        if active_module is None:
            active_module = default_module
        self._active_module = active_module

    def get_default(self) -> BaseValidationModule:
        if self._default_module is None:
            raise ModuleNotConfiguredError(
                "Default validation module is not set", "default")
        return self._default_module

    def get_active(self) -> BaseValidationModule:
        if self._active_module is None:
            raise ModuleNotConfiguredError(
                "Active validation module is not set", "active")
        return self._active_module

    def set_active(self, module: BaseValidationModule) -> None:
        self._active_module = module
