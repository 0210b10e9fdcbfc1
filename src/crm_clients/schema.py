"""
Column mappings for the store's tables and views.

THIS FILE CONTAINS CLIENT-SPECIFIC NAMING:
the store's database (and its CSV exports) use Portuguese column names.
Everything past the adapters uses the canonical English names on the right.
"""

import pandas as pd

from crm_core.parsers import DateParser, SKUNormalizer

PRODUCT_COLUMNS = {
    "sku": "sku",
    "nome_produto": "name",
    "marca": "brand",
    "genero": "gender",
    "categoria_produto": "category",
    "departamento": "department",
    "tamanho": "size",
    "cor": "color",
    "valor_venda": "unit_price",
    "quantidade_estoque": "units_on_hand",
}

SALE_ITEM_COLUMNS = {
    "movimentacao": "transaction_id",
    "sku": "sku",
    "tamanho": "size",
    "data": "occurred_at",
    "quantidade": "quantity",
}

SALE_COLUMNS = {
    "movimentacao": "transaction_id",
    "nome": "customer_name",
    "telefone": "customer_phone",
    "total_venda": "total_amount",
    "data": "occurred_at",
    "vendedor": "salesperson",
    "numero_nota_fiscal": "invoice_number",
    "tipo_pagamento": "payment_type",
}

STOCK_COLUMNS = {
    "sku": "sku",
    "nome_produto": "name",
    "marca": "brand",
    "genero": "gender",
    "departamento": "department",
    "categoria_produto": "category",
    "tamanho": "size",
    "cor": "color",
    "estoque_atual": "units_on_hand",
    "total_valor_estoque": "stock_value",
    "vendas_total_hist": "units_sold_total",
    "vendas_30d": "units_sold_30d",
    "vendas_90d": "units_sold_90d",
    "faturamento_90d": "revenue_90d",
}

CATEGORY_COLUMNS = {
    "categoria_produto": "category",
    "qtd_pedidos": "order_count",
    "pecas_vendidas": "units_sold",
    "faturamento_bruto": "gross_revenue",
    "lucro_estimado": "estimated_profit",
    "preco_medio_peca": "average_unit_price",
}

MONTHLY_COLUMNS = {
    "mes_ano": "month",
    "total_atendimentos": "visit_count",
    "faturamento_liquido_real": "net_revenue",
    "tipo_operacao": "operation_type",
}

RANKING_COLUMNS = {
    "cliente_nome": "customer_name",
    "telefone": "phone",
    "frequencia_compras": "purchase_count",
    "total_gasto_real": "total_spent",
    "ultima_compra": "last_purchase_at",
}

PORTFOLIO_COLUMNS = {
    "cliente": "customer_name",
    "vendedor_responsavel": "responsible_salesperson",
    "ultimo_vendedor": "last_salesperson",
    "total_gasto_acumulado": "accumulated_spend",
    "qtd_produtos_total": "total_products",
    "qtd_vendas": "sale_count",
    "data_ultima_compra": "last_purchase_at",
    "ultimas_preferencias": "recent_preferences",
}

DATE_COLUMNS = {"occurred_at", "last_purchase_at"}
SKU_COLUMNS = {"sku"}


def to_canonical(
    rows: list[dict] | pd.DataFrame,
    column_map: dict[str, str],
    date_parser: DateParser | None = None,
    sku_normalizer: SKUNormalizer | None = None,
) -> pd.DataFrame:
    """
    Rename store columns to canonical names and normalize dates and SKUs.

    Every canonical column of the map exists in the result (null-filled when
    the store did not return it); unknown columns are kept unchanged.
    """
    df = rows.copy() if isinstance(rows, pd.DataFrame) else pd.DataFrame(rows)
    df = df.rename(columns=column_map)
    for canonical in column_map.values():
        if canonical not in df.columns:
            df[canonical] = pd.Series(dtype=object)

    date_parser = date_parser or DateParser()
    sku_normalizer = sku_normalizer or SKUNormalizer()
    for col in DATE_COLUMNS & set(df.columns):
        df[col] = date_parser.parse_series(df[col])
    for col in SKU_COLUMNS & set(df.columns):
        df[col] = sku_normalizer.normalize_series(df[col])
    if "transaction_id" in df.columns:
        # Same text rules as SKUs, without changing case
        df["transaction_id"] = SKUNormalizer(uppercase=False).normalize_series(df["transaction_id"])
    return df
