from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, JSON, String, Text
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func

Base = declarative_base()


class DiseaseElement(Base):
    """
    社群新增的疾病元素（觸發因子 / 症狀 / 補充品）
    type_id 對應 config.categories 的分類
    """
    __tablename__ = "disease_element"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(120), nullable=False)
    description = Column(Text, nullable=True)
    type_id = Column(Integer, nullable=False, index=True)

    def __repr__(self):
        return f"<DiseaseElement(id={self.id}, name={self.name!r}, type={self.type_id})>"


class DiseaseElementAnswer(Base):
    """每筆回覆對單一元素的是/否投票"""
    __tablename__ = "disease_element_answers"

    id = Column(Integer, primary_key=True)
    element_id = Column(
        Integer,
        ForeignKey("disease_element.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    answer = Column(Boolean, nullable=False)


class ClinicalPicture(Base):
    """匿名分享的臨床圖像（確診描述與經歷）"""
    __tablename__ = "clinical_picture"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    diagnosis = Column(Text, nullable=True)
    description = Column(Text, nullable=True)
    diagnosis_year = Column(Integer, nullable=True)


class ClinicalPictureSummary(Base):
    """
    最新的 AI 摘要
    所有文字欄位在寫入前都已經過個資遮蔽
    """
    __tablename__ = "cp_summary"

    id = Column(Integer, primary_key=True)
    summary = Column(Text, nullable=False)
    median_time_since_diagnosis_years = Column(Integer, nullable=True)
    most_cited_onset_setting = Column(Text, nullable=True)
    common_cofactor = Column(Text, nullable=True)
    # 例如: ["Episodes often began at rest", ...]
    highlights = Column(JSON, nullable=False, default=list)
    source_rows = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
