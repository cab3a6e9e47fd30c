import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Event",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200, verbose_name="活动名称")),
                ("description", models.TextField(blank=True, verbose_name="活动描述")),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "草稿"), ("upcoming", "即将开始"), ("ongoing", "进行中"), ("completed", "已结束")],
                        db_index=True,
                        default="draft",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("start_date", models.DateTimeField(verbose_name="开始时间")),
                ("end_date", models.DateTimeField(verbose_name="结束时间")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "organizer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="organized_events",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="主办方",
                    ),
                ),
            ],
            options={
                "verbose_name": "活动",
                "verbose_name_plural": "活动",
                "ordering": ["-start_date", "id"],
            },
        ),
        migrations.CreateModel(
            name="Registration",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "registration_type",
                    models.CharField(
                        choices=[("individual", "个人"), ("team", "团队")],
                        default="individual",
                        max_length=20,
                        verbose_name="报名类型",
                    ),
                ),
                ("first_name", models.CharField(max_length=100, verbose_name="名")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="姓")),
                ("personal_email", models.EmailField(db_index=True, max_length=254, verbose_name="报名邮箱")),
                ("team_name", models.CharField(blank=True, max_length=120, verbose_name="队伍名称")),
                ("desired_skills", models.JSONField(blank=True, default=list, verbose_name="期望技能")),
                ("track", models.CharField(blank=True, max_length=120, verbose_name="赛道")),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="报名时间")),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="registrations",
                        to="events.event",
                        verbose_name="活动",
                    ),
                ),
            ],
            options={
                "verbose_name": "报名",
                "verbose_name_plural": "报名",
                "ordering": ["-created_at", "id"],
                "indexes": [models.Index(fields=["event", "created_at"], name="registration_event_created")],
            },
        ),
        migrations.CreateModel(
            name="RegistrationMember",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("first_name", models.CharField(max_length=100, verbose_name="名")),
                ("last_name", models.CharField(blank=True, max_length=100, verbose_name="姓")),
                ("email", models.EmailField(db_index=True, max_length=254, verbose_name="邮箱")),
                (
                    "registration",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="members",
                        to="events.registration",
                        verbose_name="报名",
                    ),
                ),
            ],
            options={
                "verbose_name": "报名成员",
                "verbose_name_plural": "报名成员",
                "ordering": ["id"],
            },
        ),
        migrations.CreateModel(
            name="Team",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=120, verbose_name="队伍名称")),
                ("score", models.FloatField(default=0, verbose_name="得分")),
                ("created_at", models.DateTimeField(default=django.utils.timezone.now, verbose_name="创建时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="teams",
                        to="events.event",
                        verbose_name="活动",
                    ),
                ),
                (
                    "members",
                    models.ManyToManyField(
                        blank=True,
                        related_name="teams",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="成员",
                    ),
                ),
            ],
            options={
                "verbose_name": "队伍",
                "verbose_name_plural": "队伍",
                "ordering": ["-score", "created_at", "id"],
                "constraints": [models.UniqueConstraint(fields=("event", "name"), name="uniq_team_name_per_event")],
            },
        ),
        migrations.CreateModel(
            name="Submission",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("title", models.CharField(max_length=200, verbose_name="作品标题")),
                ("description", models.TextField(blank=True, verbose_name="作品描述")),
                ("repo_url", models.URLField(blank=True, verbose_name="代码仓库")),
                ("score", models.FloatField(default=0, verbose_name="得分")),
                (
                    "status",
                    models.CharField(
                        choices=[("draft", "草稿"), ("submitted", "已提交"), ("reviewed", "已评审")],
                        db_index=True,
                        default="submitted",
                        max_length=20,
                        verbose_name="状态",
                    ),
                ),
                ("created_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now, verbose_name="提交时间")),
                ("updated_at", models.DateTimeField(auto_now=True, verbose_name="更新时间")),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="events.event",
                        verbose_name="活动",
                    ),
                ),
                (
                    "team",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="submissions",
                        to="events.team",
                        verbose_name="队伍",
                    ),
                ),
            ],
            options={
                "verbose_name": "作品",
                "verbose_name_plural": "作品",
                "ordering": ["-created_at", "id"],
                "indexes": [models.Index(fields=["event", "created_at"], name="submission_event_created")],
            },
        ),
        migrations.CreateModel(
            name="JudgeAssignment",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, verbose_name="分配时间")),
                (
                    "created_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="created_judge_assignments",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="分配人",
                    ),
                ),
                (
                    "event",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="judge_assignments",
                        to="events.event",
                        verbose_name="活动",
                    ),
                ),
                (
                    "judge",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="judge_assignments",
                        to=settings.AUTH_USER_MODEL,
                        verbose_name="评委",
                    ),
                ),
            ],
            options={
                "verbose_name": "评委分配",
                "verbose_name_plural": "评委分配",
                "ordering": ["-created_at", "id"],
                "constraints": [models.UniqueConstraint(fields=("judge", "event"), name="uniq_judge_per_event")],
            },
        ),
    ]
