# numbershop/repos/sms_repo.py
from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from numbershop.data.models.sms import SmsConfigurationModel, SmsFilterRuleModel, SmsRecordModel


class SmsRepo:
    def __init__(self, db: Session):
        self.db = db

    # konfiguracja
    def get_configuration(self, config_id: int) -> SmsConfigurationModel | None:
        return self.db.get(SmsConfigurationModel, config_id)

    def get_configuration_for_number(self, number_id: int) -> SmsConfigurationModel | None:
        return self.db.execute(
            select(SmsConfigurationModel).where(SmsConfigurationModel.purchased_number_id == number_id)
        ).scalar_one_or_none()

    def save(self, obj):
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    # reguly filtrow
    def get_rule(self, rule_id: int) -> SmsFilterRuleModel | None:
        return self.db.get(SmsFilterRuleModel, rule_id)

    def list_rules(self, config_id: int) -> List[SmsFilterRuleModel]:
        return list(
            self.db.execute(
                select(SmsFilterRuleModel)
                .where(SmsFilterRuleModel.sms_configuration_id == config_id)
                .order_by(SmsFilterRuleModel.priority, SmsFilterRuleModel.id)
            ).scalars()
        )

    def delete(self, obj):
        self.db.delete(obj)
        self.db.commit()

    # rekordy SMS
    def get_record_by_provider_id(self, provider_sms_id: str) -> SmsRecordModel | None:
        return self.db.execute(
            select(SmsRecordModel).where(SmsRecordModel.provider_sms_id == provider_sms_id)
        ).scalar_one_or_none()
