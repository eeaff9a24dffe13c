# numbershop/api/routers/sms_config.py
from typing import List

from fastapi import APIRouter, Depends, Response
from sqlalchemy.orm import Session

from numbershop.api.dependencies import get_db, get_current_user
from numbershop.data.models.purchased_number import PurchasedNumberModel
from numbershop.data.models.user import UserModel
from numbershop.domain.errors import Forbidden, NotFound
from numbershop.domain.schemas import (
    AutoReplyIn,
    RecipientIn,
    SmsConfigurationOut,
    SmsConfigurationUpdate,
    SmsFilterRuleIn,
    SmsFilterRuleOut,
    TestSmsIn,
    TestSmsOut,
)
from numbershop.repos.purchased_number_repo import PurchasedNumberRepo
from numbershop.services.sms_config_service import SmsConfigService

router = APIRouter(prefix="/sms-config", tags=["sms-config"])


def get_service(db: Session) -> SmsConfigService:
    return SmsConfigService(db)


def _owned_number(db: Session, number_id: int, user: UserModel) -> PurchasedNumberModel:
    number = PurchasedNumberRepo(db).get(number_id)
    if not number:
        raise NotFound("Purchased number not found")
    if number.user_id != user.id:
        raise Forbidden("Not allowed to configure this number")
    return number


def _owned_config(svc: SmsConfigService, db: Session, config_id: int, user: UserModel):
    config = svc.get_configuration(config_id)
    _owned_number(db, config.purchased_number_id, user)
    return config


@router.post("/test", response_model=TestSmsOut)
def send_test_sms(
    payload: TestSmsIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    number = _owned_number(db, payload.purchased_number_id, user)
    return get_service(db).send_test_sms(number, payload.message)


@router.delete("/filters/{rule_id}", status_code=204)
def delete_filter(
    rule_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    rule = svc.get_filter_rule(rule_id)
    _owned_config(svc, db, rule.sms_configuration_id, user)
    svc.delete_filter_rule(rule_id)
    return Response(status_code=204)


@router.get("/{purchased_number_id}", response_model=SmsConfigurationOut)
def get_configuration(
    purchased_number_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Konfiguracja SMS numeru, tworzona przy pierwszym odczycie."""
    number = _owned_number(db, purchased_number_id, user)
    return get_service(db).get_or_create(number)


@router.patch("/{config_id}", response_model=SmsConfigurationOut)
def update_configuration(
    config_id: int,
    payload: SmsConfigurationUpdate,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.update_configuration(config_id, payload)


@router.post("/{config_id}/auto-reply", response_model=SmsConfigurationOut)
def set_auto_reply(
    config_id: int,
    payload: AutoReplyIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.set_auto_reply(config_id, payload.auto_reply_enabled, payload.auto_reply_message)


@router.post("/{config_id}/recipients", response_model=SmsConfigurationOut)
def add_recipient(
    config_id: int,
    payload: RecipientIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.add_email_recipient(config_id, payload.email)


@router.delete("/{config_id}/recipients", response_model=SmsConfigurationOut)
def remove_recipient(
    config_id: int,
    payload: RecipientIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.remove_email_recipient(config_id, payload.email)


@router.get("/{config_id}/filters", response_model=List[SmsFilterRuleOut])
def list_filters(
    config_id: int,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.list_filter_rules(config_id)


@router.post("/{config_id}/filters", response_model=SmsFilterRuleOut, status_code=201)
def add_filter(
    config_id: int,
    payload: SmsFilterRuleIn,
    user: UserModel = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    svc = get_service(db)
    _owned_config(svc, db, config_id, user)
    return svc.add_filter_rule(config_id, payload)
