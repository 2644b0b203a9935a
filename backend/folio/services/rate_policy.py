"""
房价与税费策略
纯函数：金额换算与税额计算，只在入账时调用，不回溯修改历史账目
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import List, Tuple, Union

# 所有支持币种的最小单位均为百分之一（kobo / cent）
MINOR_UNIT_FACTOR = Decimal(100)
_WHOLE = Decimal("1")
_CENTS = Decimal("0.01")


def to_minor(amount: Union[Decimal, int, str]) -> int:
    """主币种金额 -> 最小货币单位（四舍五入）"""
    value = amount if isinstance(amount, Decimal) else Decimal(str(amount))
    if not value.is_finite():
        raise ValueError("金额必须是有限数值")
    return int((value * MINOR_UNIT_FACTOR).quantize(_WHOLE, rounding=ROUND_HALF_UP))


def from_minor(amount_minor: int) -> Decimal:
    """最小货币单位 -> 主币种金额（两位小数）"""
    return (Decimal(amount_minor or 0) / MINOR_UNIT_FACTOR).quantize(_CENTS)


def component_tax(base_amount_minor: int, rate) -> int:
    """单个税费项的税额：base * rate / 100，四舍五入到最小货币单位；税率 <= 0 时为 0"""
    rate = Decimal(str(rate))
    if rate <= 0:
        return 0
    tax = Decimal(base_amount_minor) * rate / Decimal(100)
    return int(tax.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def posting_components(tax_settings) -> list:
    """入账时需要单独记账的税费项：总开关启用、税费项有效且为价外税"""
    if tax_settings is None or not tax_settings.is_enabled:
        return []
    return [
        c for c in tax_settings.components
        if c.is_active and not c.is_inclusive and Decimal(str(c.rate)) > 0
    ]


def tax_lines(base_amount_minor: int, tax_settings) -> List[Tuple[str, int]]:
    """按税费项拆分的税费账目 (描述, 金额)，税额为 0 的项不入账"""
    lines = []
    for component in posting_components(tax_settings):
        amount = component_tax(base_amount_minor, component.rate)
        if amount:
            lines.append((tax_description(component), amount))
    return lines


def compute_tax(base_amount_minor: int, tax_settings) -> int:
    """
    计算税额合计
    税费未启用时返回 0；否则为各有效价外税费项的税额之和，价内税不增加金额
    """
    return sum(amount for _, amount in tax_lines(base_amount_minor, tax_settings))


def inclusive_tax(gross_amount_minor: int, rate) -> int:
    """价内税：含税金额中包含的税额 gross * rate / (100 + rate)"""
    rate = Decimal(str(rate))
    if rate <= 0:
        return 0
    tax = Decimal(gross_amount_minor) * rate / (Decimal(100) + rate)
    return int(tax.quantize(_WHOLE, rounding=ROUND_HALF_UP))


def receipt_taxes(subtotal_minor: int, tax_settings) -> List[dict]:
    """
    账单上展示的税费明细（按当前设置计算，不入账）
    只列出启用且 show_on_receipt 的税费项；价外税按小计计算，价内税取小计中包含的部分
    """
    if tax_settings is None or not tax_settings.is_enabled:
        return []
    lines = []
    for component in tax_settings.components:
        if not (component.is_active and component.show_on_receipt):
            continue
        if component.is_inclusive:
            amount = inclusive_tax(subtotal_minor, component.rate)
        else:
            amount = component_tax(subtotal_minor, component.rate)
        lines.append({
            "name": component.name,
            "rate": Decimal(str(component.rate)),
            "is_inclusive": component.is_inclusive,
            "amount_minor": amount,
        })
    return lines


def format_rate(rate) -> str:
    """7.50 -> "7.5"，10.00 -> "10" """
    return format(Decimal(str(rate)).normalize(), "f")


def tax_description(component) -> str:
    """税费账目描述，例如 "VAT (7.5%)" """
    return f"{component.name} ({format_rate(component.rate)}%)"
