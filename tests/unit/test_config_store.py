"""
Tests for the encrypted configuration store
"""

import json

import pytest

from dispatch_admin.core.config_store import ConfigStore, EnvelopeCipher, write_json_atomic
from dispatch_admin.core.errors import (
    ConfigNotFound, DecryptionFailure, InvalidFormat, ValidationError
)
from dispatch_admin.core.models import MASK_SENTINEL, ConnectionConfig, ScheduleConfig


class TestEnvelopeCipher:

    def test_round_trip_returns_same_object(self, cipher, sample_schedule):
        ciphertext = cipher.encrypt(sample_schedule)

        assert ciphertext != json.dumps(sample_schedule)
        assert cipher.decrypt(ciphertext) == sample_schedule

    def test_wrong_key_fails_with_decryption_failure(self, cipher, sample_connection):
        other = EnvelopeCipher("some-other-secret", iterations=1000)
        ciphertext = cipher.encrypt(sample_connection)

        with pytest.raises(DecryptionFailure):
            other.decrypt(ciphertext)

    def test_garbage_ciphertext_fails(self, cipher):
        with pytest.raises(DecryptionFailure):
            cipher.decrypt("not-a-token")

    def test_non_object_payload_rejected(self, cipher):
        token = cipher._fernet.encrypt(b'["a", "list"]').decode('ascii')

        with pytest.raises(DecryptionFailure):
            cipher.decrypt(token)

    def test_unwrap_requires_encrypted_flag_and_data(self, cipher):
        with pytest.raises(InvalidFormat):
            cipher.unwrap({'encrypted': False, 'data': 'x'})
        with pytest.raises(InvalidFormat):
            cipher.unwrap({'encrypted': True, 'data': ''})

    def test_empty_secret_rejected(self):
        with pytest.raises(ValueError):
            EnvelopeCipher("")


class TestConfigStore:

    def test_save_creates_directory_and_envelope(self, database_store, sample_connection):
        assert not database_store.path.parent.exists()

        database_store.save(ConnectionConfig.from_dict(sample_connection))

        envelope = json.loads(database_store.path.read_text(encoding='utf-8'))
        assert envelope['encrypted'] is True
        assert envelope['version'] == "1.0"
        assert envelope['timestamp'].endswith('Z')
        assert envelope['data']
        assert 'type' not in envelope
        assert sample_connection['password'] not in database_store.path.read_text(encoding='utf-8')

    def test_email_envelope_carries_type_marker(self, email_store, sample_schedule):
        email_store.save(ScheduleConfig.from_dict(sample_schedule))

        envelope = json.loads(email_store.path.read_text(encoding='utf-8'))
        assert envelope['type'] == "email_service"

    def test_load_round_trip(self, database_store, sample_connection):
        database_store.save(ConnectionConfig.from_dict(sample_connection))

        loaded = database_store.load()

        assert loaded.to_dict() == sample_connection

    def test_load_missing_file(self, database_store):
        with pytest.raises(ConfigNotFound) as exc_info:
            database_store.load()
        assert "database" in exc_info.value.message

    def test_load_envelope_without_data(self, database_store):
        database_store.path.parent.mkdir(parents=True)
        database_store.path.write_text(json.dumps({'encrypted': True, 'timestamp': 'x'}), encoding='utf-8')

        with pytest.raises(InvalidFormat):
            database_store.load()

    def test_load_non_json_file(self, database_store):
        database_store.path.parent.mkdir(parents=True)
        database_store.path.write_text("{not json", encoding='utf-8')

        with pytest.raises(InvalidFormat):
            database_store.load()

    @pytest.mark.parametrize("payload", [
        {},
        {'foo': 'bar'},
        {'startTime': '09:00', 'endTime': '17:00', 'interval': 30, 'intervalUnit': 'days',
         'username': 'admin', 'password': 'x'},
        {'startTime': '09:00', 'endTime': '17:00', 'interval': 30, 'intervalUnit': 'minutes',
         'username': 'admin', 'password': ''},
        {'startTime': '09:00', 'endTime': '17:00', 'interval': 'often', 'username': 'admin', 'password': 'x'},
    ])
    def test_decryptable_payload_outside_schema_is_invalid_format(self, email_store, cipher, payload):
        email_store.path.parent.mkdir(parents=True)
        envelope = cipher.wrap(payload, "email_service").to_dict()
        email_store.path.write_text(json.dumps(envelope), encoding='utf-8')

        with pytest.raises(InvalidFormat):
            email_store.load()

    def test_connection_payload_missing_fields_is_invalid_format(self, database_store, cipher):
        database_store.path.parent.mkdir(parents=True)
        envelope = cipher.wrap({'server': 'sql.example.local'}).to_dict()
        database_store.path.write_text(json.dumps(envelope), encoding='utf-8')

        with pytest.raises(InvalidFormat):
            database_store.load()

    def test_load_with_wrong_key(self, database_store, config_dir, sample_connection):
        database_store.save(ConnectionConfig.from_dict(sample_connection))
        other = ConfigStore(database_store.path, EnvelopeCipher("wrong", iterations=1000),
                            ConnectionConfig, "database")

        with pytest.raises(DecryptionFailure):
            other.load()

    def test_masked_password_keeps_stored_secret(self, database_store, sample_connection):
        database_store.save(ConnectionConfig.from_dict(sample_connection))

        update = dict(sample_connection, server='sql2.example.local', password=MASK_SENTINEL)
        database_store.save(ConnectionConfig.from_dict(update))

        loaded = database_store.load()
        assert loaded.server == 'sql2.example.local'
        assert loaded.password == sample_connection['password']

    def test_masked_password_without_prior_config(self, database_store, sample_connection):
        update = dict(sample_connection, password=MASK_SENTINEL)

        with pytest.raises(ValidationError) as exc_info:
            database_store.save(ConnectionConfig.from_dict(update))

        assert exc_info.value.field == 'password'
        assert not database_store.exists()

    def test_missing_required_field_rejected_before_write(self, database_store, sample_connection):
        incomplete = dict(sample_connection, database='')

        with pytest.raises(ValidationError) as exc_info:
            database_store.save(ConnectionConfig.from_dict(incomplete))

        assert exc_info.value.field == 'database'
        assert not database_store.path.parent.exists()

    def test_empty_password_rejected(self, database_store, sample_connection):
        with pytest.raises(ValidationError):
            database_store.save(ConnectionConfig.from_dict(dict(sample_connection, password='')))

    def test_non_numeric_port_rejected(self, database_store, sample_connection):
        with pytest.raises(ValidationError) as exc_info:
            database_store.save(ConnectionConfig.from_dict(dict(sample_connection, port='sql')))
        assert exc_info.value.field == 'port'

    def test_save_leaves_no_temp_files(self, database_store, sample_connection):
        database_store.save(ConnectionConfig.from_dict(sample_connection))
        database_store.save(ConnectionConfig.from_dict(sample_connection))

        assert [p.name for p in database_store.path.parent.iterdir()] == ['database.config']


class TestScheduleValidation:

    def test_overnight_window_rejected(self, email_store, sample_schedule):
        overnight = dict(sample_schedule, startTime='22:00', endTime='06:00')

        with pytest.raises(ValidationError) as exc_info:
            email_store.save(ScheduleConfig.from_dict(overnight))
        assert exc_info.value.field == 'endTime'

    @pytest.mark.parametrize("clock", ["9:00", "24:00", "09:60", "0900"])
    def test_bad_clock_format_rejected(self, email_store, sample_schedule, clock):
        with pytest.raises(ValidationError):
            email_store.save(ScheduleConfig.from_dict(dict(sample_schedule, startTime=clock)))

    def test_non_positive_interval_rejected(self, email_store, sample_schedule):
        with pytest.raises(ValidationError) as exc_info:
            email_store.save(ScheduleConfig.from_dict(dict(sample_schedule, interval=0)))
        assert exc_info.value.field == 'interval'

    def test_unknown_interval_unit_rejected(self, sample_schedule):
        with pytest.raises(ValidationError) as exc_info:
            ScheduleConfig.from_dict(dict(sample_schedule, intervalUnit='days'))
        assert exc_info.value.field == 'intervalUnit'

    def test_timeouts_default_to_30_seconds(self, sample_schedule):
        data = dict(sample_schedule)
        del data['dbRequestTimeout']
        del data['dbConnectionTimeout']

        config = ScheduleConfig.from_dict(data)

        assert config.db_request_timeout == 30000
        assert config.db_connection_timeout == 30000

    def test_string_interval_is_converted(self, sample_schedule):
        config = ScheduleConfig.from_dict(dict(sample_schedule, interval='45'))
        assert config.interval == 45


def test_write_json_atomic_replaces_content(tmp_path):
    target = tmp_path / "service.status"
    write_json_atomic(target, {'status': 'running'})
    write_json_atomic(target, {'status': 'stopped'})

    assert json.loads(target.read_text(encoding='utf-8')) == {'status': 'stopped'}
    assert [p.name for p in tmp_path.iterdir()] == ['service.status']
