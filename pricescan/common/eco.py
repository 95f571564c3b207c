from typing import Any, Iterable, Optional

ECO_LABELS = (
    (80, "Excellent"),
    (60, "Good"),
    (40, "Fair"),
)


def eco_score_label(score: Optional[int]) -> Optional[str]:
    if score is None:
        return None
    for threshold, label in ECO_LABELS:
        if score >= threshold:
            return label
    return "Poor"


def is_eco_product(product: Any) -> bool:
    return bool(product.eco_score or product.is_eco_friendly)


def eco_summary(products: Iterable[Any]) -> dict:
    """Eco figures over a set of products (e.g. the user's favorites)."""
    products = list(products)
    eco = [p for p in products if is_eco_product(p)]
    total_score = sum(p.eco_score or 0 for p in eco)
    return {
        "eco_products": len(eco),
        "average_eco_score": round(total_score / len(eco), 1) if eco else 0.0,
        "total_certifications": sum(len(p.sustainability_certifications or []) for p in products),
    }
