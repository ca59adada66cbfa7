"""Business insight request validation and prompt assembly - no I/O."""

from dataclasses import dataclass, field

MAX_PERIOD_LENGTH = 100


class InvalidPayload(ValueError):
    """Raised when an insights request is missing or has malformed data."""

    pass


@dataclass
class ProductSales:
    name: str
    quantity: int
    revenue: float


@dataclass
class CustomerTotal:
    name: str
    total: float


@dataclass
class InsightsRequest:
    """Aggregated shop figures for one period."""

    period: str
    revenue: float
    items_sold: int
    average_ticket: float = 0.0
    change_percent: float = 0.0
    low_stock_count: int = 0
    critical_products: list[str] = field(default_factory=list)
    top_products: list[ProductSales] = field(default_factory=list)
    top_customers: list[CustomerTotal] = field(default_factory=list)

    @classmethod
    def from_payload(cls, payload: dict) -> "InsightsRequest":
        """
        Validate and parse a request body.

        Expected shape: {"salesData": {...}, "stockData": {...},
        "customersData": {...}, "period": "..."}.
        """
        if not isinstance(payload, dict):
            raise InvalidPayload("Request body must be a JSON object")
        sales = payload.get("salesData")
        stock = payload.get("stockData")
        customers = payload.get("customersData")
        period = payload.get("period")

        for name, value in (("salesData", sales), ("stockData", stock), ("customersData", customers)):
            if not isinstance(value, dict):
                raise InvalidPayload(f"{name} is required and must be an object")

        if not isinstance(period, str) or not period.strip() or len(period) > MAX_PERIOD_LENGTH:
            raise InvalidPayload("period is required and must be a string of at most 100 characters")

        revenue = sales.get("revenue")
        items_sold = sales.get("itemsSold")
        if not _is_number(revenue) or not _is_number(items_sold):
            raise InvalidPayload("salesData must contain numeric revenue and itemsSold")

        try:
            top_products = [
                ProductSales(p["name"], int(p["quantity"]), float(p["revenue"]))
                for p in sales.get("topProducts", [])
            ]
            top_customers = [
                CustomerTotal(c["name"], float(c["total"]))
                for c in customers.get("topCustomers", [])
            ]
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayload(f"Malformed ranking entry: {e}")

        return cls(
            period=period.strip(),
            revenue=float(revenue),
            items_sold=int(items_sold),
            average_ticket=float(sales.get("averageTicket") or 0),
            change_percent=float(sales.get("changePercent") or 0),
            low_stock_count=int(stock.get("lowStockCount") or 0),
            critical_products=[str(p) for p in stock.get("criticalProducts", [])],
            top_products=top_products,
            top_customers=top_customers,
        )


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def build_insights_prompt(request: InsightsRequest) -> str:
    """Compile the analyst prompt for the text generator."""
    sign = "+" if request.change_percent > 0 else ""
    critical = (
        f"- Produtos críticos: {', '.join(request.critical_products)}\n"
        if request.critical_products
        else ""
    )
    products_md = "\n".join(
        f"- {p.name}: {p.quantity} unidades vendidas (R$ {p.revenue:.2f})"
        for p in request.top_products
    ) or "- Nenhum"
    customers_md = "\n".join(
        f"- {c.name}: R$ {c.total:.2f} em compras" for c in request.top_customers
    ) or "- Nenhum"

    return f"""Você é um analista de negócios especializado em varejo. Analise os dados abaixo e forneça 3-4 insights práticos e acionáveis em português do Brasil.

PERÍODO ANALISADO: {request.period}

DADOS DE VENDAS:
- Faturamento: R$ {request.revenue:.2f}
- Produtos vendidos: {request.items_sold}
- Ticket médio: R$ {request.average_ticket:.2f}
- Variação vs período anterior: {sign}{request.change_percent:.1f}%

ESTOQUE:
- Produtos em alerta de estoque baixo: {request.low_stock_count}
{critical}
TOP PRODUTOS:
{products_md}

TOP CLIENTES:
{customers_md}

Forneça insights sobre:
1. Tendências de vendas e oportunidades
2. Alertas de estoque e recomendações
3. Análise de produtos e clientes
4. Ações recomendadas para melhorar resultados

Seja específico e objetivo. Cada insight deve ter no máximo 2-3 linhas.
"""
