from sqlalchemy import Column, Integer, String, Date, Float, Text, ForeignKey, Index, Enum, JSON
from sqlalchemy.orm import relationship
import enum
from .base import TimeStampedModel, VersionedMixin

class QCStatusEnum(enum.Enum):
    OK = "OK"
    WARNING = "WARNING"
    ERROR = "ERROR"

class WestgardRuleEnum(enum.Enum):
    RULE_13S = "1-3s"
    RULE_22S = "2-2s"
    RULE_R4S = "R-4s"
    RULE_41S = "4-1s"
    RULE_10X = "10x"
    RULE_12S = "1-2s"

class ControlConfig(TimeStampedModel, VersionedMixin):
    __tablename__ = "control_configs"

    analyte_id = Column(String(50), unique=True, nullable=False, index=True)
    display_name = Column(String(100), nullable=False)
    unit = Column(String(20))

    # Target values
    target_mean = Column(Float, nullable=False)
    target_sd = Column(Float, nullable=False)

    # Relationships
    measurements = relationship(
        "QCMeasurement",
        back_populates="control_config",
        order_by="QCMeasurement.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<ControlConfig(analyte='{self.analyte_id}', mean={self.target_mean}, sd={self.target_sd})>"

class QCMeasurement(TimeStampedModel):
    __tablename__ = "qc_measurements"

    measurement_id = Column(String(50), nullable=False, index=True)

    # Result data
    run_date = Column(Date, nullable=False)
    value = Column(Float, nullable=False)
    comments = Column(Text)
    position = Column(Integer, nullable=False)  # stored order, tie-break for equal dates

    # QC evaluation
    status = Column(Enum(QCStatusEnum))
    z_score = Column(Float)  # (value - mean) / SD, NULL when SD is 0
    rules = Column(JSON, default=list)

    # Associations
    control_config_id = Column(Integer, ForeignKey('control_configs.id'), nullable=False)
    control_config = relationship("ControlConfig", back_populates="measurements")

    # Indexes
    __table_args__ = (
        Index('idx_measurement_config_position', 'control_config_id', 'position'),
        Index('idx_measurement_config_date', 'control_config_id', 'run_date'),
    )

    def __repr__(self):
        status = self.status.value if self.status else None
        return f"<QCMeasurement(id='{self.measurement_id}', value={self.value}, status='{status}')>"
