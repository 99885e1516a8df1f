"""
Screen Markers - Literal texts and accessibility identifiers owned by the app under test
"""
from typing import Tuple

from pydantic import BaseModel, ConfigDict


class ScreenMarkers(BaseModel):
    """Marker vocabulary the classifier, readiness gate and flows match against"""

    model_config = ConfigDict(frozen=True, extra="forbid")

    # Main screen
    main_menu: Tuple[str, ...] = ("menuSettingsInactive", "menuSettingsActive")
    main_feed: Tuple[str, ...] = ("menuFeedActive", "menuFeedInactive")
    menu_prefix: str = "menuSettings"
    greeting_prefix: str = "Привіт,"
    greeting_text: str = "Привіт, Віктор 👋"

    # Authorization screen
    auth_checkbox: str = "checkbox_conditions_bordered_auth"
    auth_title: str = "title_auth"
    auth_provider: str = "BankID"
    auth_provider_button: str = "BankID НБУ"
    auth_provider_enabled: Tuple[str, ...] = (
        'name="BankID НБУ  . "',
        'name="checkbox_conditions_bordered_auth"',
    )

    # Provider web view
    webview_bank_button: str = "Банк НаДія"
    token_field_id: str = "tokenInputField"
    sign_in_id: str = "SignIn"
    next_button: str = "Далі"

    # PIN screens
    pin_create_title: str = "title_pincreate"
    pin_confirm_title: str = "title_pinconfirm"
    pin_login_header: str = "Код для входу"
    forgot_code: Tuple[str, ...] = ("Не пам'ятаю код", "Не пам'ятаю")
    forgot_code_confirm: str = "Авторизуватися"
    lockout_title: str = "Ви ввели неправильний код тричі"
    lockout_message: str = "Пройдіть повторну авторизацію у застосунку"

    # Transient and generic markers
    loading_text: str = "Триває завантаження даних"
    interactive_control: str = "XCUIElementTypeButton"

    # Menu and settings
    menu_items: Tuple[str, ...] = ("Налаштування", "Вийти", "Settings")
    sign_out_button: str = "Вийти"
    settings_title: str = "Налаштування"
    settings_menu_item: str = "Налаштування ."
    settings_back: str = "menu back"
    change_pin_item: str = "Змінити код для входу"
    pin_repeat_header: str = "Повторіть\nкод з 4 цифр"
    pin_new_header: str = "Новий\nкод з 4 цифр"
    pin_changed_title: str = "Код змінено"
    pin_changed_message: str = "Ви змінили код для входу у застосунок Дія."
    pin_changed_ack: str = "Дякую"

    # Documents
    documents_tab: str = "Документи"
    document_title: str = "Посвідчення водія"

    def has_main(self, snapshot: str) -> bool:
        return any(m in snapshot for m in self.main_menu) or any(m in snapshot for m in self.main_feed)

    def has_forgot_code(self, snapshot: str) -> bool:
        return any(m in snapshot for m in self.forgot_code)
