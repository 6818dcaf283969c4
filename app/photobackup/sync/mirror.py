"""Mirror executor: runs one MirrorJob through a transfer primitive."""

import logging

from photobackup.sync.errors import TransportError
from photobackup.sync.models import MirrorJob, TransferReport
from photobackup.sync.transfer import Transfer

logger = logging.getLogger(__name__)


class MirrorExecutor:
    """Executes one-way delete-synchronizing mirrors.

    Attributes:
        _transfer: Transfer primitive that moves the data.
    """

    def __init__(self, transfer: Transfer) -> None:
        self._transfer = transfer

    @property
    def transfer(self) -> Transfer:
        """The transfer primitive in use."""
        return self._transfer

    def run(self, job: MirrorJob) -> TransferReport:
        """Mirror a job's source into its destination.

        Args:
            job: The mirror job to execute.

        Returns:
            TransferReport from the transfer primitive.

        Raises:
            TransportError: If the transfer fails.
            ProtectionIntegrityError: If the transfer rejects the job's rules.
        """
        logger.info("Backing up '%s' to '%s'...", job.source.name, job.destination)
        if job.filter_file is not None:
            logger.info("Using protection filter: %s", job.filter_file)
        if job.dry_run:
            logger.debug("Dry-run: destination will not be modified")

        try:
            report = self._transfer.transfer(job)
        except TransportError:
            logger.error("Transfer of '%s' failed", job.source.name)
            raise

        logger.info(
            "%s '%s': %d transferred, %d deleted",
            "Planned" if job.dry_run else "Mirrored",
            job.source.name,
            len(report.transferred),
            len(report.deleted),
        )
        return report
