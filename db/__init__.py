from .db import (
    Base,
    get_session,
    dispose_engine,
    create_all,
    get_profile,
    upsert_profile,
    find_user_by_phone,
    insert_message,
    get_message,
    update_message,
    delete_message,
    list_messages,
    list_all_messages,
    insert_recipient,
    update_recipient,
    delete_recipient,
    list_recipients,
    insert_condition,
    get_condition,
    get_condition_for_message,
    update_condition,
    set_condition_active,
    list_active_conditions,
    list_user_conditions,
    set_conditions_last_checked,
    replace_reminder_schedule,
    cancel_pending_reminders,
    claim_due_reminders,
    mark_reminder_sent,
    mark_reminder_failed,
    reset_stuck_reminders,
    list_reminders,
    record_delivery,
    get_delivery,
    mark_pin_verified,
    record_view,
    insert_check_in,
    list_check_ins,
)  # noqa: F401
