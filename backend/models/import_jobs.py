from sqlalchemy import Column, DateTime, Integer, String, Text, func

from db.base import Base

JOB_RUNNING = "running"
JOB_SUCCESS = "success"
JOB_PARTIAL = "partial"
JOB_FAILED = "failed"


class ImportJob(Base):
    __tablename__ = "import_jobs"

    id = Column(Integer, primary_key=True, index=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500))
    total_rows = Column(Integer)
    inserted_rows = Column(Integer)
    skipped_rows = Column(Integer)
    error_rows = Column(Integer)
    status = Column(String(20), nullable=False, default=JOB_RUNNING, index=True)
    error_message = Column(Text)
    started_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    completed_at = Column(DateTime(timezone=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "fileName": self.file_name,
            "filePath": self.file_path,
            "totalRows": self.total_rows,
            "inserted": self.inserted_rows,
            "skipped": self.skipped_rows,
            "errors": self.error_rows,
            "status": self.status,
            "errorMessage": self.error_message,
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "completedAt": self.completed_at.isoformat() if self.completed_at else None,
        }
