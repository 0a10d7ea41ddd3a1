"""English and Arabic reply templates."""

from __future__ import annotations

from concierge.actions.base import ServiceCatalog
from concierge.protocol.builder import EARLIEST_AVAILABLE
from concierge.protocol.types import ActionKind, ActionResult, ActionStatus, ErrorReason, Proposal

DEFAULT_LANGUAGE = "en"
SUPPORTED_LANGUAGES = ("en", "ar")

MESSAGES: dict[str, dict[str, str]] = {
    "fallback": {
        "en": "I didn't quite catch that. I can help you book a service or cancel a booking.",
        "ar": "لم أفهم طلبك تماماً. يمكنني مساعدتك في حجز خدمة أو إلغاء حجز.",
    },
    "unsupported": {
        "en": "I can't do that yet.",
        "ar": "لا يمكنني القيام بذلك بعد.",
    },
    "clarify_field": {
        "en": "Could you share the {field}?",
        "ar": "هل يمكنك تزويدي بـ{field}؟",
    },
    "book_prompt": {
        "en": 'I\'d like to book "{title}" for you on {date} at {time}.{address} Would you like me to confirm this booking?',
        "ar": 'سأحجز "{title}" لك بتاريخ {date} الساعة {time}.{address} هل تريد تأكيد هذا الحجز؟',
    },
    "book_prompt_earliest": {
        "en": 'I\'d like to book "{title}" for you at the earliest available time.{address} Would you like me to confirm this booking?',
        "ar": 'سأحجز "{title}" لك في أقرب موعد متاح.{address} هل تريد تأكيد هذا الحجز؟',
    },
    "address_suffix": {
        "en": " The service will be provided at {address}.",
        "ar": " سيتم تقديم الخدمة في {address}.",
    },
    "cancel_prompt": {
        "en": "I'll cancel your booking #{booking_id} for you. Please confirm that you want to cancel this booking.",
        "ar": "سألغي حجزك رقم {booking_id}. يرجى تأكيد رغبتك في إلغاء هذا الحجز.",
    },
    "book_succeeded": {
        "en": "Booking created successfully! Your booking ID is #{booking_id}.",
        "ar": "تم إنشاء الحجز بنجاح! رقم حجزك هو {booking_id}.",
    },
    "cancel_succeeded": {
        "en": "Booking #{booking_id} has been cancelled successfully.",
        "ar": "تم إلغاء الحجز رقم {booking_id} بنجاح.",
    },
    "cancelled": {
        "en": "Okay, I won't go ahead with that.",
        "ar": "حسناً، لن أقوم بذلك.",
    },
    "no_longer_valid": {
        "en": "That request is no longer valid, please ask again.",
        "ar": "هذا الطلب لم يعد صالحاً، يرجى إعادة الطلب.",
    },
    "sign_in_required": {
        "en": "Please sign in to continue. Your request will stay ready for a few minutes.",
        "ar": "يرجى تسجيل الدخول للمتابعة. سيبقى طلبك جاهزاً لبضع دقائق.",
    },
    "execution_failed": {
        "en": "Sorry, I couldn't complete that ({detail}). Please start over with a new request.",
        "ar": "عذراً، لم أتمكن من إتمام ذلك ({detail}). يرجى البدء بطلب جديد.",
    },
}

FIELD_LABELS: dict[str, dict[str, str]] = {
    "service_reference": {"en": "service you'd like to book", "ar": "الخدمة التي تريد حجزها"},
    "when": {"en": "date and time", "ar": "التاريخ والوقت"},
    "booking_id": {"en": "booking number", "ar": "رقم الحجز"},
}


def pick_language(language: str | None) -> str:
    if language and language.lower()[:2] in SUPPORTED_LANGUAGES:
        return language.lower()[:2]
    return DEFAULT_LANGUAGE


def render(key: str, language: str, **values: str) -> str:
    templates = MESSAGES[key]
    return templates.get(language, templates[DEFAULT_LANGUAGE]).format(**values)


def clarification(missing_fields: tuple[str, ...], language: str) -> str:
    name = missing_fields[0]
    label = FIELD_LABELS.get(name, {}).get(language) or name.replace("_", " ")
    return render("clarify_field", language, field=label)


def confirmation_prompt(proposal: Proposal, catalog: ServiceCatalog, language: str) -> str:
    parameters = proposal.parameters
    if proposal.action_kind is ActionKind.CANCEL:
        return render("cancel_prompt", language, booking_id=parameters["booking_id"])

    service = catalog.get(parameters["service_reference"])
    title = service.display_title(language) if service else parameters["service_reference"]
    address = parameters.get("address")
    suffix = render("address_suffix", language, address=address) if address else ""
    when = parameters["when"]
    if when == EARLIEST_AVAILABLE:
        return render("book_prompt_earliest", language, title=title, address=suffix)
    date, _, time = when.partition("T")
    return render("book_prompt", language, title=title, date=date, time=time, address=suffix)


def result_reply(result: ActionResult, language: str) -> str:
    if result.status is ActionStatus.SUCCEEDED:
        key = "book_succeeded" if result.action_kind is ActionKind.BOOK else "cancel_succeeded"
        return render(key, language, booking_id=str(result.result_payload.get("booking_id", "")))
    if result.status is ActionStatus.CANCELLED:
        return render("cancelled", language)
    if result.error_reason is ErrorReason.SIGN_IN_REQUIRED:
        return render("sign_in_required", language)
    if result.error_reason is ErrorReason.EXECUTION_FAILED:
        return render("execution_failed", language, detail=result.detail or "")
    return render("no_longer_valid", language)
