"""
Quote Services

Supabase-backed persistence for quotes, clients, user settings and saved
cost calculations, plus dashboard analytics built on the calculation engine.
"""

from .database import get_supabase
from .quote_service import (
    generate_quote_number,
    build_quote_items,
    build_quote,
    create_quote,
    get_quote,
    get_all_quotes,
    get_quotes_by_status,
    update_quote,
    update_quote_status,
    record_down_payment,
    delete_quote,
)
from .client_service import (
    Client,
    validate_email,
    validate_phone,
    create_client,
    get_client,
    get_all_clients,
    update_client,
    delete_client,
    compute_client_stats,
    update_client_stats,
    refresh_client_stats,
    top_clients,
)
from .settings_service import (
    UserSettings,
    DEFAULT_SETTINGS,
    get_user_settings,
    update_user_settings,
    get_exchange_rates,
)
from .cost_history_service import (
    MAX_HISTORY_ENTRIES,
    build_snapshot,
    add_to_history,
    delete_from_history,
    duplicate_in_history,
    rename_in_history,
    search_history,
    get_history_statistics,
    is_calculation_recent,
    export_calculation,
    save_calculation,
    list_calculations,
    delete_calculation,
)
from .analytics_service import (
    PeriodReport,
    get_dashboard_stats,
    recent_quotes,
    get_quote_breakdowns,
    monthly_evolution,
    build_period_report,
    fetch_period_report,
)
