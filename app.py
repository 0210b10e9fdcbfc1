"""
Retail CRM Dashboard

A thin Streamlit host over crm_core: every number shown here is computed
by the core functions; this file only fetches, calls and renders tables.
Run with: streamlit run app.py
"""

import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent / "src"))

import streamlit as st

from crm_clients import ExportFileStore, SupabaseRetailStore
from crm_core import (
    DataSourceUnavailable,
    EmptySearchError,
    ProductFilterCriteria,
    SalesSniperMatcher,
    StockGrain,
    aggregate_stock,
    assess_stock,
    compute_dashboard_kpis,
    customer_portfolio,
    filter_ranking,
    filter_stock,
    format_coverage,
    matches_to_frame,
    policy_for,
    purchase_history,
    rank_customers,
    summarize_assessment,
)
from crm_core.config import get_settings
from crm_core.logging import configure_logging

st.set_page_config(page_title="Retail CRM", page_icon="🛍️", layout="wide")


@st.cache_resource
def get_store():
    """Supabase when credentials are configured, CSV exports otherwise."""
    settings = get_settings()
    configure_logging()
    if settings.supabase.url and settings.supabase.key is not None:
        return SupabaseRetailStore.from_settings(settings)
    return ExportFileStore.from_directory(settings=settings)


def brl(value: float) -> str:
    return f"R$ {value:,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")


def overview_page(store):
    st.header("Visão Geral")
    kpis, top_categories, evolution = compute_dashboard_kpis(
        store.load_categories(), store.load_monthly()
    )
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Faturamento (Top 5 categorias)", brl(kpis.gross_revenue))
    col2.metric("Lucro estimado", brl(kpis.estimated_profit))
    col3.metric("Atendimentos", f"{kpis.total_orders:,}")
    col4.metric("Ticket médio", brl(kpis.average_ticket))

    left, right = st.columns(2)
    left.subheader("Categorias")
    left.dataframe(top_categories, use_container_width=True, hide_index=True)
    right.subheader("Evolução mensal")
    right.dataframe(evolution, use_container_width=True, hide_index=True)


def inventory_page(store):
    st.header("Análise de Estoque")
    grain_label = st.radio("Nível", ["Por SKU", "Por marca/categoria/gênero"], horizontal=True)
    grain = StockGrain.SKU if grain_label == "Por SKU" else StockGrain.AGGREGATE

    stock = store.load_stock()
    brands = sorted(stock["brand"].dropna().unique())
    genders = sorted(stock["gender"].dropna().unique())
    col1, col2 = st.columns(2)
    brand = col1.selectbox("Marca", ["Todas"] + brands)
    gender = col2.selectbox("Gênero", ["Todos"] + genders)
    selection = ProductFilterCriteria.from_form(brand=brand, gender=gender)
    stock = filter_stock(stock, brand=selection.brand, gender=selection.gender)

    if grain is StockGrain.AGGREGATE:
        stock = aggregate_stock(stock)
    window = get_settings().analysis.velocity_window_days
    assessed = assess_stock(stock, policy_for(grain), window_days=window)

    summary = summarize_assessment(assessed)
    col1, col2, col3, col4, col5 = st.columns(5)
    col1.metric("Valor em estoque", brl(summary["stock_value"]))
    col2.metric("Peças em estoque", f"{summary['units_on_hand']:,}")
    col3.metric("Vendas 90 dias", f"{summary['units_sold_90d']:,}")
    col4.metric("Comprar", summary["restock_count"])
    col5.metric("Liquidar", summary["liquidate_count"])

    display = assessed.copy()
    display["cobertura"] = [
        format_coverage(days, infinite)
        for days, infinite in zip(display["coverage_days"], display["coverage_is_infinite"])
    ]
    st.dataframe(display, use_container_width=True, hide_index=True)


def sniper_page(store):
    st.header("🎯 Sales Sniper")
    with st.form("sniper"):
        col1, col2, col3, col4 = st.columns(4)
        brand = col1.text_input("Marca")
        gender = col2.selectbox("Gênero", ["Todos", "Feminino", "Masculino", "Unissex"])
        size = col3.text_input("Tamanho")
        category = col4.text_input("Categoria")
        submitted = st.form_submit_button("Buscar clientes")

    if not submitted:
        return

    try:
        criteria = ProductFilterCriteria.from_form(brand, size, gender, category).require_any()
    except EmptySearchError:
        st.warning("Informe ao menos um filtro.")
        return

    matcher = SalesSniperMatcher.from_settings(store, get_settings())
    try:
        matches = matcher.search(criteria)
    except DataSourceUnavailable as exc:
        st.error(f"Não foi possível consultar a base: {exc}")
        return

    if not matches:
        st.info("Nenhum cliente encontrado para esses filtros.")
        return
    st.success(f"{len(matches)} clientes encontrados")
    st.dataframe(matches_to_frame(matches), use_container_width=True, hide_index=True)


def ranking_page(store):
    st.header("Ranking de Clientes")
    analysis = get_settings().analysis
    entries, kpis = rank_customers(
        store.load_ranking(),
        store.load_sales(),
        limit=analysis.ranking_limit,
        excluded_names=analysis.excluded_customer_names,
    )
    col1, col2, col3, col4 = st.columns(4)
    col1.metric("Total vendido", brl(kpis.total_sales))
    col2.metric("Clientes", kpis.customer_count)
    col3.metric("Ticket médio", brl(kpis.average_ticket))
    col4.metric("Atendimentos", kpis.total_visits)

    term = st.text_input("Buscar cliente ou vendedora")
    st.dataframe(
        [e.__dict__ for e in filter_ranking(entries, term)],
        use_container_width=True,
        hide_index=True,
    )


def portfolio_page(store):
    st.header("Carteira de Clientes")
    portfolio = store.load_portfolio()
    salespeople = sorted(portfolio["responsible_salesperson"].dropna().unique())
    choice = st.selectbox("Vendedora", ["Todos"] + salespeople)
    view = customer_portfolio(portfolio, None if choice == "Todos" else choice)
    st.dataframe(view, use_container_width=True, hide_index=True)

    customer = st.selectbox("Histórico do cliente", [""] + view["customer_name"].dropna().tolist())
    if not customer:
        return
    sales = store.load_sales(customer_name=customer)
    items = store.load_items_for(sales["transaction_id"].dropna().tolist())
    history = purchase_history(sales, items, customer)

    col1, col2, col3 = st.columns(3)
    col1.metric("Total gasto", brl(history.total_spent))
    col2.metric("Compras", history.purchase_count)
    col3.metric("Peças", history.total_items)
    st.dataframe([e.__dict__ for e in history.entries], use_container_width=True, hide_index=True)


PAGES = {
    "Visão Geral": overview_page,
    "Estoque": inventory_page,
    "Sales Sniper": sniper_page,
    "Ranking": ranking_page,
    "Carteira": portfolio_page,
}

page = st.sidebar.radio("Página", list(PAGES))
try:
    PAGES[page](get_store())
except DataSourceUnavailable as exc:
    st.error(f"Base de dados indisponível: {exc}")
