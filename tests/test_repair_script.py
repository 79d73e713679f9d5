"""
Tests for the schema repair and language setup scripts.
"""

from autotranslate import create_app
from autotranslate.config import TestingConfig
from autotranslate.models import FieldMeta, Language, Permission, Relation
from scripts.repair_schema import build_parser, main
from scripts.setup_languages import setup_languages

POLICY_ID = '589ed02d-416c-405b-9f75-b4b99285e584'


def test_parser_defaults_to_every_repair():
    args = build_parser().parse_args([])
    assert args.only == ['relations', 'markers', 'fields', 'links', 'permissions']
    assert args.policy is None


def test_repairs_duplicates_and_markers(app, db_session, capsys):
    for _ in range(2):
        db_session.add(Relation(many_collection='map_locations_translations',
                                many_field='languages_code', one_collection='directus_languages'))
    db_session.add(FieldMeta(collection='map_locations', field='translations', special='{translations}'))
    db_session.commit()

    exit_code = main(['--only', 'relations', 'markers'], app=app)

    assert exit_code == 0
    assert Relation.query.count() == 1
    assert FieldMeta.query.one().special == '["translations"]'
    output = capsys.readouterr().out
    assert 'duplicate_relation' in output
    assert 'Unrepaired: 0' in output


def test_clean_database_reports_no_drift(app, db_session, capsys):
    assert main(['--only', 'relations', 'markers'], app=app) == 0
    assert 'No drift found' in capsys.readouterr().out


def test_unrepaired_drift_exits_one(app, db_session):
    db_session.add(FieldMeta(collection='map_locations', field='translations', special='sorted'))
    db_session.commit()

    assert main(['--only', 'markers'], app=app) == 1


def test_policy_argument_overrides_config(app, db_session):
    assert main(['--only', 'permissions', '--policy', 'aaaaaaaa-0000-0000-0000-000000000000'],
                app=app) == 0

    assert Permission.query.filter_by(policy=POLICY_ID).count() == 0
    assert Permission.query.filter_by(policy='aaaaaaaa-0000-0000-0000-000000000000').count() > 0


def test_unreachable_database_exits_two(tmp_path, provider):
    config = TestingConfig()
    config.SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'missing' / 'cms.db'}"
    broken = create_app(config, provider=provider)

    assert main(['--only', 'relations'], app=broken) == 2


def test_setup_languages(app, db_session):
    assert setup_languages(app) is True
    assert sorted(code for (code,) in db_session.query(Language.code)) == ['en-US', 'id-ID']

    assert setup_languages(app) is True
    assert Language.query.count() == 2
