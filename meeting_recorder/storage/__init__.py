from .s3_service import S3ArchiveUploader

__all__ = ["S3ArchiveUploader"]
