from voice_bridge.bridge.generation import GenerationGate, GenerationRequest


def request(reason):
    return GenerationRequest(reason=reason, response={"modalities": ["audio", "text"]})


def test_first_request_is_released_immediately():
    gate = GenerationGate()
    first = request("user_turn")
    assert gate.request(first, user_initiated=True) is first
    assert gate.in_flight


def test_requests_queue_while_in_flight_and_release_fifo():
    gate = GenerationGate()
    gate.request(request("user_turn"), user_initiated=True)

    assert gate.request(request("tool:c1")) is None
    assert gate.request(request("tool:c2")) is None
    assert gate.waiting == 2

    assert gate.release().reason == "tool:c1"
    assert gate.in_flight
    assert gate.release().reason == "tool:c2"
    assert gate.release() is None
    assert not gate.in_flight


def test_without_single_flight_every_request_is_released():
    gate = GenerationGate(single_flight=False)
    gate.request(request("a"))
    assert gate.request(request("b")) is not None
    assert gate.waiting == 0


def test_cancel_drops_waiting_and_suppresses_until_user_turn():
    gate = GenerationGate()
    gate.request(request("user_turn"), user_initiated=True)
    gate.request(request("tool:c1"))

    assert gate.cancel() is True
    assert gate.waiting == 0
    assert gate.release() is None

    assert gate.request(request("tool:c2")) is None
    assert gate.waiting == 0

    assert gate.request(request("user_turn"), user_initiated=True) is not None
    assert not gate.suppressed


def test_cancel_with_nothing_in_flight():
    gate = GenerationGate()
    assert gate.cancel() is False


def test_rejected_request_frees_the_gate():
    gate = GenerationGate()
    gate.request(request("client"), user_initiated=True)
    assert gate.awaiting_start
    gate.request(request("user_turn"), user_initiated=True)

    assert gate.reject().reason == "user_turn"
    assert gate.in_flight and gate.awaiting_start
    assert gate.reject() is None
    assert not gate.in_flight


def test_reject_after_start_is_ignored():
    gate = GenerationGate()
    gate.request(request("user_turn"), user_initiated=True)
    gate.mark_started()

    assert gate.reject() is None
    assert gate.in_flight


def test_upstream_started_response_counts_as_in_flight():
    gate = GenerationGate()
    gate.mark_started()
    assert gate.request(request("tool:c1")) is None
    assert gate.release().reason == "tool:c1"
