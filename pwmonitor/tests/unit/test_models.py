from pwmonitor.models import (GatewayEndpoint, GatewayResponse, LoginResponse, Metric, OperationRequest,
                              normalize_mode)


def test_endpoint_url():
    assert GatewayEndpoint('10.0.1.99').url('api/operation') == 'https://10.0.1.99/api/operation'
    assert GatewayEndpoint('pw.local', '/proxy/').url('/api/operation') == 'https://pw.local/proxy/api/operation'


def test_normalize_mode():
    assert normalize_mode('reserve') == 'backup'
    assert normalize_mode('Reserve') == 'backup'
    assert normalize_mode('backup') == 'backup'
    assert normalize_mode('self_consumption') == 'self_consumption'
    # unknown modes are left for the gateway to judge
    assert normalize_mode('storm_watch') == 'storm_watch'


def test_operation_request_for_mode():
    assert OperationRequest.for_mode('reserve', 35).to_payload() == {
        'mode': 'backup', 'real_mode': 'backup', 'backup_reserve_percent': 100}
    assert OperationRequest.for_mode('autonomous', 35).to_payload() == {
        'mode': 'autonomous', 'real_mode': 'autonomous', 'backup_reserve_percent': 35}


def test_auth_rejected():
    assert GatewayResponse(401).auth_rejected
    assert GatewayResponse(200, {'code': 401}).auth_rejected
    assert GatewayResponse(200, {'code': '401'}).auth_rejected
    assert not GatewayResponse(200, {'code': 500}).auth_rejected
    assert not GatewayResponse(200, {'code': None}).auth_rejected
    assert not GatewayResponse(200, 'code: 401').auth_rejected
    assert not GatewayResponse(403, None).auth_rejected


def test_login_response():
    assert LoginResponse.from_payload({'token': 'abc'}).token == 'abc'
    assert LoginResponse.from_payload({'token': ''}).token is None
    assert LoginResponse.from_payload({'error': 'bad'}).error == 'bad'
    assert LoginResponse.from_payload('nope').error is not None


def test_metric_event_names():
    assert [m.event_name for m in Metric] == [
        'soe-updated', 'solar-updated', 'grid-updated', 'battery-updated', 'load-updated']
