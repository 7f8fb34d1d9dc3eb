import datetime
import zoneinfo

from django.db import models
from django.utils.translation import gettext_lazy as _

from model_utils.fields import AutoCreatedField, AutoLastModifiedField


class IndexedTimeStampedModel(models.Model):
    created = AutoCreatedField(_("created"), db_index=True)
    modified = AutoLastModifiedField(_("modified"), db_index=True)

    class Meta:
        abstract = True


class MetaJsonFieldModel(models.Model):
    meta = models.JSONField(_("meta"), default=dict, blank=True)

    class Meta:
        abstract = True


class BaseModel(IndexedTimeStampedModel, MetaJsonFieldModel):
    class Meta(IndexedTimeStampedModel.Meta, MetaJsonFieldModel.Meta):
        abstract = True


class LocalTimePeriodModel(models.Model):
    """
    Stores a wall-clock period in the timezone of the location it happens at.
    Dates and times are kept separately so recurring occurrences can be moved
    to another date without touching the times.
    """

    start_date = models.DateField(_("start date"), db_index=True)
    start_time = models.TimeField(_("start time"))
    end_date = models.DateField(_("end date"))
    end_time = models.TimeField(_("end time"))
    timezone = models.CharField(_("timezone"), max_length=64, default="UTC")

    class Meta:
        abstract = True

    @property
    def start_datetime(self) -> datetime.datetime:
        return datetime.datetime.combine(
            self.start_date, self.start_time, tzinfo=zoneinfo.ZoneInfo(self.timezone)
        )

    @property
    def end_datetime(self) -> datetime.datetime:
        return datetime.datetime.combine(
            self.end_date, self.end_time, tzinfo=zoneinfo.ZoneInfo(self.timezone)
        )
