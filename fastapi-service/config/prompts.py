# config/prompts.py
from typing import Dict, List, Optional
import json


class PromptTemplates:
    CLINICAL_PICTURE_SUMMARY_SYSTEM = "\n".join([
        "You summarize anonymous AFib experience submissions for learning and pattern-spotting.",
        "No medical advice: do not instruct, recommend, diagnose, or suggest treatments; avoid 'should/try/avoid' and avoid second-person ('you/your').",
        "Be calm, neutral, factual, and privacy-preserving: do not quote verbatim; do not include names, locations, exact dates/times, or identifying details.",
        "Only use information supported by the provided data; do not invent details. If uncertain or missing, write 'Not stated'.",
        "Write for clarity and comprehension while staying concise.",
        "Output must be valid JSON only with keys: summary, onset_setting, cofactor, insights.",
        "Constraints:",
        "- summary: maximum 10 sentences.",
        "- onset_setting: the most frequently mentioned onset setting; short phrase (<= 6 words).",
        "- cofactor: the most frequently mentioned cofactor/trigger; short phrase (<= 6 words).",
        "- insights: exactly 3 items; each item <= 18 words; describe commonly reported patterns or experiences (not advice).",
    ])

    @staticmethod
    def build_summary_prompt(
        entries: List[Dict[str, str]],
        median_years: Optional[int],
        total_rows: Optional[int],
        sampled_rows: int,
    ) -> str:
        """建構摘要的使用者提示詞（統計值已預先計算）"""
        if total_rows is not None:
            total_line = f"Total submissions (pre-count): {total_rows}"
        else:
            total_line = "Total submissions: Not stated"

        if median_years is not None:
            median_line = f"Median years since diagnosis (pre-computed): {median_years}"
        else:
            median_line = "Median years since diagnosis: Not stated"

        data = [
            {"diagnosis": entry["diagnosis"], "description": entry["description"]}
            for entry in entries
        ]

        return "\n".join([
            total_line,
            median_line,
            f"Sampled entries provided: {sampled_rows}",
            "Data (array of entries):",
            json.dumps(data, ensure_ascii=False, separators=(",", ":")),
        ])
