from dataclasses import dataclass, field
from typing import Dict, List, Optional

# 1 = 觸發因子, 2 = 症狀, 3 = 補充品
DISEASE_ELEMENT_TYPE_IDS = (1, 2, 3)


@dataclass(frozen=True)
class CategoryConfig:
    """
    疾病元素分類設定
    用於統計表格的欄位名稱，以及資料庫尚無元素時的預設問卷卡片
    """
    slug: str
    type_id: int
    column_key: str
    title: str
    description: str
    fallback_cards: List[Dict[str, str]] = field(default_factory=list)


CATEGORY_CONFIGS: Dict[str, CategoryConfig] = {
    "triggers": CategoryConfig(
        slug="triggers",
        type_id=1,
        column_key="trigger",
        title="Triggers",
        description="Community results from all past responses. Tap Contribute to record your triggers and add one if it’s missing.",
        fallback_cards=[
            {"title": "Caffeine", "description": "Coffee, energy drinks, pre-workout."},
            {"title": "Alcohol", "description": "Wine, beer, spirits."},
            {"title": "Stress", "description": "Acute stress, deadlines, arguments."},
            {"title": "Lack of sleep", "description": "Short or disrupted nights."},
            {"title": "Cold exposure", "description": "Cold weather or cold showers."},
        ],
    ),
    "symptoms": CategoryConfig(
        slug="symptoms",
        type_id=2,
        column_key="symptom",
        title="Symptoms",
        description="Community results from all past responses. Tap Contribute to record your symptoms and add one if it’s missing.",
        fallback_cards=[
            {"title": "Palpitations", "description": "Racing or fluttering heart sensations."},
            {"title": "Dizziness", "description": "Feeling lightheaded or unsteady."},
            {"title": "Chest discomfort", "description": "Tightness or pressure in the chest."},
            {"title": "Shortness of breath", "description": "Breathlessness with light activity."},
            {"title": "Fatigue", "description": "Unusual tiredness without clear cause."},
        ],
    ),
    "supplements": CategoryConfig(
        slug="supplements",
        type_id=3,
        column_key="supplement",
        title="Supplements",
        description="Community results from all past responses. Tap Contribute to record your supplements and add one if it’s missing.",
        fallback_cards=[
            {"title": "Magnesium", "description": "Supplemental magnesium (glycinate, citrate)."},
            {"title": "Omega-3", "description": "Fish oil or algae-based omega-3s."},
            {"title": "CoQ10", "description": "Ubiquinone/ubiquinol coenzyme Q10."},
            {"title": "Electrolytes", "description": "Electrolyte mixes with sodium/potassium."},
            {"title": "Taurine", "description": "Amino acid often used for calming effects."},
        ],
    ),
}


def get_category_config(slug: str) -> Optional[CategoryConfig]:
    return CATEGORY_CONFIGS.get(slug)
