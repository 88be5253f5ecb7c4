from typer.testing import CliRunner

from mutrack.cli.dump import app

STEPS = """event,track_id,parent_id,particle,pdg,volume,edep,t,x,y,z,e,px,py,pz
4,1,0,mu-,13,1,1.2,1.0,0.0,71050.0,0.0,1000.0,0.0,990.0,0.0
4,2,1,e-,11,2,0.1,2.0,0.0,71250.0,0.0,1.0,0.0,0.5,0.0
9,1,0,mu+,-13,1,1.0,1.0,0.0,71050.0,0.0,1000.0,0.0,990.0,0.0
"""


def test_dump_all_events(tmp_path):
    p = tmp_path / "steps.csv"
    p.write_text(STEPS)
    result = CliRunner().invoke(app, [str(p)])
    assert result.exit_code == 0, result.output
    assert "| Event: 4 | Hit Count: 2 |" in result.output
    assert "| Event: 9 | Hit Count: 1 |" in result.output
    assert " e- | 2 | 1 | 2 | Deposit: " in result.output


def test_dump_single_event(tmp_path):
    p = tmp_path / "steps.csv"
    p.write_text(STEPS)
    result = CliRunner().invoke(app, [str(p), "--event", "9"])
    assert result.exit_code == 0
    assert "Event: 4" not in result.output
    assert "| Event: 9 | Hit Count: 1 |" in result.output

    missing = CliRunner().invoke(app, [str(p), "--event", "5"])
    assert missing.exit_code == 1
